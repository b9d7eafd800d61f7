"""markgrab CLI — documentation site to Markdown.

Usage:
    python cli/main.py --help

Commands:
    scrape      → scrape a site (llms.txt, follow selector or single page)
    links       → list the links a selector matches on a page
    check-llms  → inspect a site's llms.txt manifest
    analyze     → dump a page's simplified HTML structure
    serve       → run the HTTP tool server
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from markgrab.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import logging
from typing import Optional

import typer

from markgrab.analyze import HtmlAnalysis, analyze_html_structure
from markgrab.config import build_scrape_configuration, settings, validate_url
from markgrab.errors import ScrapeError
from markgrab.scraper.discovery import links_from_selector
from markgrab.scraper.fetcher import create_client
from markgrab.scraper.manifest import fetch_manifest, manifest_stats, manifest_url
from markgrab.scraper.models import PageLink
from markgrab.scraper.orchestrator import format_dry_run, scrape as run_scrape

app = typer.Typer(
    name="markgrab",
    help="Scrape documentation sites to Markdown.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(exc: ScrapeError) -> None:
    typer.echo(f"❌ {exc}", err=True)
    raise typer.Exit(code=1)


def _client():
    return create_client(
        timeout=settings.request_timeout, user_agent=settings.user_agent
    )


# ---------------------------------------------------------------------------
# Scrape
# ---------------------------------------------------------------------------

@app.command("scrape")
def scrape(
    url: str = typer.Option(..., "--url", "-u", help="Base URL to scrape."),
    follow: Optional[str] = typer.Option(
        None, "--follow", "-f", help="CSS selector for links to follow."
    ),
    content: Optional[str] = typer.Option(
        None, "--content", "-c", help="CSS selector for the content area."
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output directory (a <domain>/ folder is created inside)."
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", help="TOML config file with per-domain settings."
    ),
    native_md: Optional[bool] = typer.Option(
        None, "--native-md/--no-native-md", help="Try native Markdown URLs first."
    ),
    llms_txt: Optional[bool] = typer.Option(
        None, "--llms-txt/--no-llms-txt", help="Use the site's llms.txt when present."
    ),
    include_optional: bool = typer.Option(
        False, "--include-optional", help="Include llms.txt Optional sections."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would be scraped and exit."
    ),
    max_retries: Optional[int] = typer.Option(
        None, "--max-retries", min=0, help="Retries per request."
    ),
    retry_delay: Optional[int] = typer.Option(
        None, "--retry-delay", min=0, help="Base retry delay in milliseconds."
    ),
    max_concurrent: Optional[int] = typer.Option(
        None, "--max-concurrent", min=1, help="Pages scraped in parallel."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Scrape a documentation site into Markdown files."""
    _configure_logging(verbose)

    try:
        run_config = build_scrape_configuration(
            url,
            follow_links_selector=follow,
            content_area_selector=content,
            output_dir=output,
            use_native_md=native_md,
            use_llms_txt=llms_txt,
            include_optional=include_optional or None,
            dry_run=dry_run,
            max_retries=max_retries,
            retry_delay_ms=retry_delay,
            max_concurrency=max_concurrent,
            config_path=config,
        )
        typer.echo(f"🚀 Scraping {run_config.base_url}")
        result = asyncio.run(run_scrape(run_config, progress_stream=sys.stdout))
    except ScrapeError as exc:
        _fail(exc)
        return

    if result.dry_run:
        typer.echo("🔍 Dry run, nothing written.\n")
        typer.echo(format_dry_run(result, run_config))
        return

    typer.echo(f"📁 Output: {result.output_dir}")


# ---------------------------------------------------------------------------
# Discovery helpers
# ---------------------------------------------------------------------------

async def _extract_links(url: str, selector: str) -> list[PageLink]:
    async with _client() as client:
        return await links_from_selector(
            client,
            url,
            selector,
            max_retries=settings.max_retries,
            retry_delay_ms=settings.retry_delay_ms,
        )


@app.command("links")
def links(
    url: str = typer.Option(..., "--url", "-u", help="Page to extract links from."),
    selector: str = typer.Option(..., "--selector", "-s", help="CSS selector for links."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """List the links on a page that match a CSS selector."""
    _configure_logging(verbose)
    try:
        validate_url(url)
        found = asyncio.run(_extract_links(url, selector))
    except ScrapeError as exc:
        _fail(exc)
        return

    if not found:
        typer.echo(f"No links matched {selector!r}.")
        return
    typer.echo(f"🔗 {len(found)} link(s):")
    for index, link in enumerate(found, start=1):
        typer.echo(f"  {index}. {link.title} - {link.url}")


async def _check_llms(url: str, include_optional: bool) -> Optional[str]:
    async with _client() as client:
        document = await fetch_manifest(client, url)
    if document is None:
        return None

    stats = manifest_stats(document, url, include_optional)
    lines = [f"📄 {manifest_url(url)}", f"Title: {document.title or '(none)'}"]
    if document.description:
        lines.append(f"Description: {document.description}")
    lines.append(f"Sections ({stats.total_sections}):")
    for section in stats.sections:
        marker = " (optional)" if section.is_optional else ""
        lines.append(f"  - {section.title}{marker}: {section.link_count} link(s)")
    lines.append(f"Total links: {stats.total_links}")
    if stats.skipped_optional_links:
        lines.append(f"Skipped optional links: {stats.skipped_optional_links}")
    if stats.skipped_external_links:
        lines.append(f"Skipped external links: {stats.skipped_external_links}")
    return "\n".join(lines)


@app.command("check-llms")
def check_llms(
    url: str = typer.Option(..., "--url", "-u", help="Any page of the site."),
    include_optional: bool = typer.Option(
        False, "--include-optional", help="Count Optional sections too."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Check whether a site publishes llms.txt and summarise it."""
    _configure_logging(verbose)
    try:
        validate_url(url)
    except ScrapeError as exc:
        _fail(exc)
        return

    report = asyncio.run(_check_llms(url, include_optional))
    if report is None:
        typer.echo(f"No llms.txt found at {manifest_url(url)}")
        return
    typer.echo(report)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

async def _analyze(url: str) -> HtmlAnalysis:
    async with _client() as client:
        return await analyze_html_structure(
            client,
            url,
            output_dir=settings.ensure_analysis_dir(),
            max_retries=settings.max_retries,
            retry_delay_ms=settings.retry_delay_ms,
        )


@app.command("analyze")
def analyze(
    url: str = typer.Option(..., "--url", "-u", help="Page to analyse."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Write a page's simplified HTML structure and print a preview."""
    _configure_logging(verbose)
    try:
        analysis = asyncio.run(_analyze(url))
    except ScrapeError as exc:
        _fail(exc)
        return

    typer.echo(f"📝 Structure written to {analysis.temp_file_path}")
    typer.echo(f"Size: {analysis.file_size} characters\n")
    typer.echo(analysis.preview)


# ---------------------------------------------------------------------------
# Tool server
# ---------------------------------------------------------------------------

@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
    reload: bool = typer.Option(False, help="Auto-reload on code changes."),
) -> None:
    """Run the HTTP tool server."""
    import uvicorn

    uvicorn.run("markgrab.api.app:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
