"""Per-page content resolution.

A page's Markdown is resolved through an ordered fallback:

    full-content passthrough → native Markdown probe → HTML conversion

Only the first and last steps can fail; the native Markdown probe treats
every miss as "not available" and hands over to HTML conversion.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional
from urllib.parse import urlsplit

import httpx

from markgrab.scraper.converter import MarkdownConverter, extract_content_html
from markgrab.scraper.fetcher import fetch_text

logger = logging.getLogger(__name__)

NATIVE_MARKDOWN_HEADERS = {"Accept": "text/markdown, text/plain, */*"}

# Shorter bodies are error stubs rather than documents.
_MIN_MARKDOWN_LENGTH = 10

_EXTENSION = re.compile(r"^(.+)\.([a-z0-9]+)$", re.IGNORECASE)
_SYSTEM_BLOCK = re.compile(r"<SYSTEM>.*?</SYSTEM>\s*", re.DOTALL)
_HTML_MARKERS = ("<!doctype", "<html")


# ---------------------------------------------------------------------------
# Native Markdown discovery
# ---------------------------------------------------------------------------

def markdown_candidate_urls(url: str) -> List[str]:
    """Return the URLs a site may publish *url*'s Markdown source at, in probe order.

    ``/page.html`` → ``/page.md``, ``/page.html.md``
    ``/docs/guide/`` → ``/docs/guide/index.md``, ``/docs/guide.md``
    ``/docs/guide`` → ``/docs/guide.md``, ``/docs/guide/index.md``
    """
    parts = urlsplit(url)
    origin = f"{parts.scheme}://{parts.netloc}"
    path = parts.path or "/"
    has_trailing_slash = path.endswith("/")
    path_without_slash = path[:-1] if has_trailing_slash else path

    match = _EXTENSION.match(path_without_slash)
    if match:
        stem = match.group(1)
        return [f"{origin}{stem}.md", f"{origin}{path_without_slash}.md"]

    candidates: List[str] = []
    if has_trailing_slash:
        candidates.append(f"{origin}{path}index.md")
    if path_without_slash:
        candidates.append(f"{origin}{path_without_slash}.md")
    if not has_trailing_slash:
        candidates.append(f"{origin}{path_without_slash}/index.md")
    return candidates


def _looks_like_markdown(text: str) -> bool:
    head = text.lstrip()[:16].lower()
    if head.startswith(_HTML_MARKERS):
        return False
    return len(text) >= _MIN_MARKDOWN_LENGTH


async def fetch_native_markdown(client: httpx.AsyncClient, url: str) -> Optional[str]:
    """Probe the candidate Markdown URLs for *url*; return the first good body.

    Returns ``None`` when no candidate yields Markdown.  Probes are not
    retried and never raise.
    """
    for candidate in markdown_candidate_urls(url):
        try:
            response = await client.get(candidate, headers=NATIVE_MARKDOWN_HEADERS)
        except httpx.HTTPError as exc:
            logger.debug("Markdown probe %s failed: %s", candidate, exc)
            continue

        if not response.is_success:
            continue

        text = response.text
        if not _looks_like_markdown(text):
            continue

        logger.debug("Using native Markdown from %s", candidate)
        return text

    return None


def strip_system_directives(text: str) -> str:
    """Remove ``<SYSTEM>…</SYSTEM>`` preambles from a full-content document."""
    return _SYSTEM_BLOCK.sub("", text).strip()


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class PageResolver:
    """Resolves page URLs to Markdown using one shared client and converter."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        converter: MarkdownConverter,
        *,
        max_retries: int = 3,
        retry_delay_ms: int = 1000,
    ) -> None:
        self.client = client
        self.converter = converter
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms

    async def _fetch(self, url: str) -> str:
        return await fetch_text(
            self.client,
            url,
            max_retries=self.max_retries,
            retry_delay_ms=self.retry_delay_ms,
        )

    async def resolve(
        self,
        url: str,
        *,
        is_full_content: bool = False,
        content_selector: str = "body",
        use_native_md: bool = True,
    ) -> str:
        """Return the Markdown for *url*.

        Raises:
            FetchError: If the full-content document or the HTML page cannot
                be fetched.
            SelectorNotFoundError: If *content_selector* matches nothing.
        """
        if is_full_content:
            logger.debug("Using full-content document %s", url)
            return strip_system_directives(await self._fetch(url))

        if use_native_md:
            markdown = await fetch_native_markdown(self.client, url)
            if markdown is not None:
                return markdown
            logger.debug("No native Markdown for %s, converting HTML", url)

        html = await self._fetch(url)
        content_html = extract_content_html(html, content_selector, url)
        return self.converter.convert(content_html)
