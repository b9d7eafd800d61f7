"""Tool endpoints — each scraping operation as a named tool.

Routes
------
GET  /tools                             List tool names and descriptions
POST /tools/scrape_documentation        Scrape a site to Markdown files
POST /tools/preview_scrape              Discovery only, nothing is written
POST /tools/extract_links               Links matching a CSS selector
POST /tools/check_llms_txt              Inspect a site's llms.txt manifest
POST /tools/analyze_html_structure      Simplified DOM dump for selector picking

Request and response bodies use camelCase keys.
"""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from markgrab.analyze import analyze_html_structure
from markgrab.config import (
    ScrapeConfiguration,
    build_scrape_configuration,
    settings,
    validate_url,
)
from markgrab.errors import FetchError, ScrapeError
from markgrab.scraper.discovery import links_from_selector
from markgrab.scraper.manifest import fetch_manifest, manifest_stats, manifest_url
from markgrab.scraper.orchestrator import discover, scrape

router = APIRouter()

TOOLS: dict[str, str] = {
    "scrape_documentation": (
        "Scrape a documentation site to Markdown files, using llms.txt, a "
        "follow-links selector or the single page, in that order."
    ),
    "preview_scrape": "List the pages a scrape would fetch without fetching them.",
    "extract_links": "Extract the links matching a CSS selector on one page.",
    "check_llms_txt": "Check whether a site publishes llms.txt and summarise it.",
    "analyze_html_structure": (
        "Write a simplified HTML structure of a page to help choose the "
        "content and follow-links selectors."
    ),
}


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScrapeRequest(CamelModel):
    url: str
    mode: Literal["auto", "follow", "single"] = "auto"
    follow_links_selector: Optional[str] = None
    content_area_selector: Optional[str] = None
    output_dir: Optional[str] = None
    use_native_md: Optional[bool] = None
    use_llms_txt: Optional[bool] = None
    include_optional: Optional[bool] = None
    max_concurrent: Optional[int] = Field(None, ge=1)
    max_retries: Optional[int] = Field(None, ge=0)
    dry_run: bool = False


class PageError(CamelModel):
    url: str
    error: str


class ScrapeStats(CamelModel):
    total: int
    successful: int
    failed: int
    duration: str


class ScrapeResponse(CamelModel):
    success: bool
    files_created: int
    output_directory: str
    stats: ScrapeStats
    files: list[str]
    errors: list[PageError] = []


class PageSummary(CamelModel):
    title: str
    url: str


class PreviewConfig(CamelModel):
    content_selector: str
    output_dir: str
    native_md: bool
    mode: str


class PreviewResponse(CamelModel):
    total_pages: int
    pages: list[PageSummary]
    config: PreviewConfig


class ExtractLinksRequest(CamelModel):
    url: str
    selector: str = Field(..., min_length=1)


class ExtractLinksResponse(CamelModel):
    links: list[PageSummary]
    count: int


class CheckLlmsTxtRequest(CamelModel):
    url: str
    include_optional: bool = False


class SectionSummary(CamelModel):
    title: str
    link_count: int
    is_optional: bool


class CheckLlmsTxtResponse(CamelModel):
    found: bool
    llms_txt_url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    sections: list[SectionSummary] = []
    total_links: int = 0
    skipped_optional_links: int = 0
    skipped_external_links: int = 0


class AnalyzeRequest(CamelModel):
    url: str


class AnalyzeResponse(CamelModel):
    url: str
    temp_file_path: str
    file_size: int
    preview: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _http_error(exc: ScrapeError) -> HTTPException:
    status_code = 502 if isinstance(exc, FetchError) else 400
    return HTTPException(status_code=status_code, detail=str(exc))


def _run_configuration(body: ScrapeRequest) -> ScrapeConfiguration:
    follow_links_selector = body.follow_links_selector
    use_llms_txt = body.use_llms_txt

    if body.mode == "single":
        follow_links_selector = ""
        use_llms_txt = False
    elif body.mode == "follow":
        if not (follow_links_selector or "").strip():
            raise HTTPException(
                status_code=422,
                detail='followLinksSelector is required when mode is "follow"',
            )
        use_llms_txt = False

    return build_scrape_configuration(
        body.url,
        follow_links_selector=follow_links_selector,
        content_area_selector=body.content_area_selector,
        output_dir=body.output_dir,
        use_native_md=body.use_native_md,
        use_llms_txt=use_llms_txt,
        include_optional=body.include_optional,
        dry_run=body.dry_run,
        max_retries=body.max_retries,
        max_concurrency=body.max_concurrent,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=list[dict[str, str]])
def list_tools_endpoint() -> list[dict[str, str]]:
    """Return every tool's name and description."""
    return [{"name": name, "description": text} for name, text in TOOLS.items()]


@router.post("/scrape_documentation", response_model=ScrapeResponse)
async def scrape_documentation_endpoint(
    body: ScrapeRequest, request: Request
) -> ScrapeResponse:
    """Run a full scrape and report the files written and per-page failures.

    Per-page failures do not fail the request; they are listed in ``errors``.
    """
    try:
        config = _run_configuration(body)
        result = await scrape(config, client=request.app.state.client)
    except ScrapeError as exc:
        raise _http_error(exc) from exc

    duration = f"{result.duration:.1f}s"
    if result.stats is None:
        stats = ScrapeStats(total=len(result.plan.links), successful=0, failed=0, duration=duration)
        errors: list[PageError] = []
    else:
        stats = ScrapeStats(
            total=result.stats.total,
            successful=result.stats.success,
            failed=result.stats.failed,
            duration=duration,
        )
        errors = [PageError(url=e.url, error=e.error) for e in result.stats.errors]

    return ScrapeResponse(
        success=True,
        files_created=len(result.files),
        output_directory=str(result.output_dir),
        stats=stats,
        files=[str(path) for path in result.files],
        errors=errors,
    )


@router.post("/preview_scrape", response_model=PreviewResponse)
async def preview_scrape_endpoint(
    body: ScrapeRequest, request: Request
) -> PreviewResponse:
    """Run discovery only and list the pages a scrape would fetch."""
    try:
        config = _run_configuration(body)
        plan = await discover(config, request.app.state.client)
    except ScrapeError as exc:
        raise _http_error(exc) from exc

    return PreviewResponse(
        total_pages=len(plan.links),
        pages=[PageSummary(title=link.title, url=link.url) for link in plan.links],
        config=PreviewConfig(
            content_selector=config.content_area_selector,
            output_dir=str(config.site_output_dir),
            native_md=config.use_native_md,
            mode=plan.mode.value,
        ),
    )


@router.post("/extract_links", response_model=ExtractLinksResponse)
async def extract_links_endpoint(
    body: ExtractLinksRequest, request: Request
) -> ExtractLinksResponse:
    """Return the links on ``url`` matching ``selector``."""
    try:
        validate_url(body.url)
        links = await links_from_selector(
            request.app.state.client,
            body.url,
            body.selector,
            max_retries=settings.max_retries,
            retry_delay_ms=settings.retry_delay_ms,
        )
    except ScrapeError as exc:
        raise _http_error(exc) from exc

    return ExtractLinksResponse(
        links=[PageSummary(title=link.title, url=link.url) for link in links],
        count=len(links),
    )


@router.post("/check_llms_txt", response_model=CheckLlmsTxtResponse)
async def check_llms_txt_endpoint(
    body: CheckLlmsTxtRequest, request: Request
) -> CheckLlmsTxtResponse:
    """Fetch ``<origin>/llms.txt`` and summarise what a scrape would use."""
    try:
        validate_url(body.url)
    except ScrapeError as exc:
        raise _http_error(exc) from exc

    document = await fetch_manifest(request.app.state.client, body.url)
    if document is None:
        return CheckLlmsTxtResponse(found=False)

    stats = manifest_stats(document, body.url, body.include_optional)
    return CheckLlmsTxtResponse(
        found=True,
        llms_txt_url=manifest_url(body.url),
        title=document.title,
        description=document.description,
        sections=[
            SectionSummary(
                title=section.title,
                link_count=section.link_count,
                is_optional=section.is_optional,
            )
            for section in stats.sections
        ],
        total_links=stats.total_links,
        skipped_optional_links=stats.skipped_optional_links,
        skipped_external_links=stats.skipped_external_links,
    )


@router.post("/analyze_html_structure", response_model=AnalyzeResponse)
async def analyze_html_structure_endpoint(
    body: AnalyzeRequest, request: Request
) -> AnalyzeResponse:
    """Write the page's simplified structure to a file and return a preview."""
    try:
        analysis = await analyze_html_structure(
            request.app.state.client,
            body.url,
            output_dir=settings.ensure_analysis_dir(),
            max_retries=settings.max_retries,
            retry_delay_ms=settings.retry_delay_ms,
        )
    except ScrapeError as exc:
        raise _http_error(exc) from exc

    return AnalyzeResponse(
        url=analysis.url,
        temp_file_path=str(analysis.temp_file_path),
        file_size=analysis.file_size,
        preview=analysis.preview,
    )
