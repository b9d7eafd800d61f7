"""End-to-end scrape orchestration.

Strategy selection runs in a fixed priority order and commits to the first
strategy that produces targets:

    manifest (llms.txt)  →  follow selector  →  single page

The committed targets then run as one batch: every page is resolved to
Markdown and written to ``<output_dir>/<domain>/<sanitized title>.md`` under a
shared concurrency bound, with one progress tracker counting outcomes.  A
failing page is recorded and never stops its siblings.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict, List, Optional, TextIO

import httpx

from markgrab.config import ScrapeConfiguration, Settings, settings
from markgrab.errors import DiscoveryError
from markgrab.scraper.converter import MarkdownConverter
from markgrab.scraper.discovery import links_from_manifest, links_from_selector
from markgrab.scraper.fetcher import create_client
from markgrab.scraper.manifest import fetch_manifest, manifest_stats
from markgrab.scraper.models import (
    DiscoveryPlan,
    PageLink,
    ScrapeMode,
    ScrapeResult,
)
from markgrab.scraper.naming import sanitize_filename, title_from_url
from markgrab.scraper.progress import ProgressTracker
from markgrab.scraper.resolver import PageResolver
from markgrab.scraper.retry import describe_error
from markgrab.scraper.scheduler import BoundedScheduler

logger = logging.getLogger(__name__)

DRY_RUN_PREVIEW_LIMIT = 10


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

async def _try_manifest(
    config: ScrapeConfiguration, client: httpx.AsyncClient
) -> Optional[DiscoveryPlan]:
    manifest = await fetch_manifest(client, config.base_url)
    if manifest is None:
        return None

    stats = manifest_stats(manifest, config.base_url, config.include_optional)
    logger.info(
        "Found llms.txt %r: %s",
        manifest.title,
        ", ".join(f"{s.title} ({s.link_count})" for s in stats.sections if s.link_count),
    )
    if stats.skipped_optional_links:
        logger.info("Skipping %d optional link(s)", stats.skipped_optional_links)
    if stats.skipped_external_links:
        logger.info("Skipping %d external link(s)", stats.skipped_external_links)

    links = links_from_manifest(manifest, config.base_url, config.include_optional)
    if not links:
        logger.info("llms.txt yielded no same-origin links; trying other strategies")
        return None
    return DiscoveryPlan(mode=ScrapeMode.MANIFEST, links=links, manifest=manifest)


async def discover(
    config: ScrapeConfiguration, client: httpx.AsyncClient
) -> DiscoveryPlan:
    """Pick a strategy and return the targets it produces.

    Raises:
        FetchError: If the follow-selector page cannot be fetched.
        DiscoveryError: If an explicit follow selector matches no links.
    """
    if config.use_llms_txt:
        plan = await _try_manifest(config, client)
        if plan is not None:
            return plan

    selector = config.follow_links_selector.strip()
    if selector:
        links = await links_from_selector(
            client,
            config.base_url,
            selector,
            max_retries=config.max_retries,
            retry_delay_ms=config.retry_delay_ms,
        )
        if not links:
            raise DiscoveryError(
                f"No links found for selector {selector!r} on {config.base_url}; "
                "check the selector or the page structure"
            )
        logger.info("Found %d page(s) with selector %r", len(links), selector)
        return DiscoveryPlan(mode=ScrapeMode.FOLLOW, links=links)

    link = PageLink(url=config.base_url, title=title_from_url(config.base_url))
    return DiscoveryPlan(mode=ScrapeMode.SINGLE, links=[link])


# ---------------------------------------------------------------------------
# Batch execution
# ---------------------------------------------------------------------------

async def scrape_page(
    link: PageLink,
    *,
    resolver: PageResolver,
    config: ScrapeConfiguration,
    output_dir: Path,
    tracker: ProgressTracker,
    written: Dict[Path, str],
) -> Optional[Path]:
    """Resolve and write one page; failures are recorded on *tracker*.

    Returns the written path, or ``None`` if the page failed.
    """
    tracker.start()
    try:
        markdown = await resolver.resolve(
            link.url,
            is_full_content=link.is_full_content,
            content_selector=config.content_area_selector,
            use_native_md=config.use_native_md,
        )
        path = output_dir / f"{sanitize_filename(link.title)}.md"
        if path in written:
            logger.warning(
                "%s overwrites %s, previously written from %s",
                link.url, path, written[path],
            )
        path.write_text(markdown, encoding="utf-8")
        written[path] = link.url
    except Exception as exc:
        message = str(exc) or describe_error(exc)
        logger.info("Failed %s: %s", link.url, message)
        tracker.fail(link.url, message)
        return None

    tracker.success()
    return path


async def run_batch(
    links: List[PageLink],
    config: ScrapeConfiguration,
    *,
    client: httpx.AsyncClient,
    converter: MarkdownConverter,
    output_dir: Path,
    progress_stream: Optional[TextIO] = None,
) -> tuple[ProgressTracker, List[Path]]:
    """Scrape *links* concurrently and return the tracker and written files."""
    output_dir.mkdir(parents=True, exist_ok=True)

    resolver = PageResolver(
        client,
        converter,
        max_retries=config.max_retries,
        retry_delay_ms=config.retry_delay_ms,
    )
    tracker = ProgressTracker(len(links), stream=progress_stream)
    scheduler = BoundedScheduler(config.max_concurrency)
    written: Dict[Path, str] = {}
    files: List[Path] = []

    async def _page(link: PageLink) -> None:
        path = await scrape_page(
            link,
            resolver=resolver,
            config=config,
            output_dir=output_dir,
            tracker=tracker,
            written=written,
        )
        if path is not None:
            files.append(path)

    await scheduler.run(lambda link=link: _page(link) for link in links)
    return tracker, files


async def scrape(
    config: ScrapeConfiguration,
    *,
    client: Optional[httpx.AsyncClient] = None,
    converter: Optional[MarkdownConverter] = None,
    progress_stream: Optional[TextIO] = None,
    settings: Settings = settings,
) -> ScrapeResult:
    """Discover targets for *config* and, unless it is a dry run, scrape them.

    Args:
        config: The run's resolved configuration.
        client: Shared HTTP client; one is created (and closed) when omitted.
        converter: HTML → Markdown converter; defaults to ``MarkdownConverter()``.
        progress_stream: Where to draw progress and the summary, if anywhere.
        settings: Supplies the timeout and user agent of a created client.

    Raises:
        ScrapeError: Discovery failures abort the run before any page work.
    """
    if client is None:
        async with create_client(
            timeout=settings.request_timeout, user_agent=settings.user_agent
        ) as owned:
            return await scrape(
                config,
                client=owned,
                converter=converter,
                progress_stream=progress_stream,
                settings=settings,
            )

    started = time.monotonic()
    output_dir = config.site_output_dir
    plan = await discover(config, client)

    if config.dry_run:
        return ScrapeResult(
            plan=plan,
            output_dir=output_dir,
            dry_run=True,
            duration=time.monotonic() - started,
        )

    logger.info("Scraping %d page(s) into %s", len(plan.links), output_dir)
    tracker, files = await run_batch(
        plan.links,
        config,
        client=client,
        converter=converter or MarkdownConverter(),
        output_dir=output_dir,
        progress_stream=progress_stream,
    )
    tracker.show_summary()

    return ScrapeResult(
        plan=plan,
        output_dir=output_dir,
        stats=tracker.stats,
        files=files,
        duration=time.monotonic() - started,
    )


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

def format_dry_run(result: ScrapeResult, config: ScrapeConfiguration) -> str:
    """Describe what a run would scrape, without having scraped anything."""
    links = result.plan.links
    lines = [f"Pages to scrape ({len(links)}, mode: {result.plan.mode.value}):"]
    for index, link in enumerate(links[:DRY_RUN_PREVIEW_LIMIT], start=1):
        lines.append(f"  {index}. {link.title} - {link.url}")
    if len(links) > DRY_RUN_PREVIEW_LIMIT:
        lines.append(f"  ... and {len(links) - DRY_RUN_PREVIEW_LIMIT} more")
    lines.extend(
        [
            "",
            "Configuration:",
            f"  Content selector: {config.content_area_selector}",
            f"  Output directory: {result.output_dir}",
            f"  Native Markdown: {'enabled' if config.use_native_md else 'disabled'}",
            f"  Max concurrency: {config.max_concurrency}",
            f"  Max retries: {config.max_retries}",
        ]
    )
    return "\n".join(lines)
