"""Link discovery — the two ways a run finds its targets.

``links_from_manifest`` flattens a parsed ``llms.txt``; ``links_from_selector``
collects anchors matching a CSS selector on one page.
"""

from __future__ import annotations

import logging
from typing import List
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from markgrab.errors import DiscoveryError
from markgrab.scraper.fetcher import fetch_text
from markgrab.scraper.models import ManifestDocument, PageLink

logger = logging.getLogger(__name__)

# hrefs containing any of these point at build assets, not documentation.
_EXCLUDED_HREF_FRAGMENTS = ("_next", "sitemap", "favicon")


def links_from_manifest(
    document: ManifestDocument,
    origin_url: str,
    include_optional: bool = False,
) -> List[PageLink]:
    """Flatten *document* into same-origin scrape targets, in document order.

    Links to ``.txt`` files (``llms-full.txt`` and the like) are flagged as
    full-content targets.  Cross-origin and unparsable links are skipped.
    """
    origin_host = urlsplit(origin_url).hostname
    links: List[PageLink] = []

    for section in document.sections:
        if section.is_optional and not include_optional:
            continue

        for link in section.links:
            try:
                absolute = urljoin(origin_url, link.url)
                parts = urlsplit(absolute)
                host = parts.hostname
            except ValueError:
                logger.debug("Skipping unparsable manifest link %r", link.url)
                continue

            if host != origin_host:
                continue

            links.append(
                PageLink(
                    url=absolute,
                    title=link.title,
                    is_full_content=parts.path.endswith(".txt"),
                )
            )

    return links


async def links_from_selector(
    client: httpx.AsyncClient,
    page_url: str,
    selector: str,
    *,
    max_retries: int = 3,
    retry_delay_ms: int = 1000,
) -> List[PageLink]:
    """Return the deduplicated links matching *selector* on *page_url*.

    Elements need a non-empty ``href`` and non-empty text; the text becomes
    the link title.  The first occurrence of each absolute URL wins.

    Raises:
        FetchError: If the page cannot be fetched.
        DiscoveryError: If *selector* is not valid CSS.
    """
    html = await fetch_text(
        client, page_url, max_retries=max_retries, retry_delay_ms=retry_delay_ms
    )
    soup = BeautifulSoup(html, "html.parser")
    try:
        elements = soup.select(selector)
    except SelectorSyntaxError as exc:
        raise DiscoveryError(f"Invalid CSS selector {selector!r}: {exc}") from exc

    seen: set[str] = set()
    links: List[PageLink] = []
    for element in elements:
        href = (element.get("href") or "").strip()
        title = element.get_text().strip()
        if not href or not title:
            continue
        if any(fragment in href for fragment in _EXCLUDED_HREF_FRAGMENTS):
            continue

        try:
            absolute = urljoin(page_url, href)
        except ValueError:
            continue
        if urlsplit(absolute).scheme not in ("http", "https"):
            continue
        if absolute not in seen:
            seen.add(absolute)
            links.append(PageLink(url=absolute, title=title))

    logger.debug("Selector %r matched %d link(s) on %s", selector, len(links), page_url)
    return links
