"""HTML structure analysis for choosing scrape selectors.

Fetches a page, strips it down to its tag skeleton (tags plus the ``id``,
``class`` and ``role`` attributes, anchor ``href``s and short leaf text) and
writes the result to a file an operator, or an assistant, can read to pick
``--content`` and ``--follow`` selectors.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlsplit

import httpx
from bs4 import BeautifulSoup, Tag

from markgrab.config import validate_url
from markgrab.scraper.fetcher import fetch_text

logger = logging.getLogger(__name__)

# Elements that carry no structure worth analysing.
_STRIPPED_TAGS = [
    "script", "style", "noscript", "iframe", "svg", "img",
    "picture", "video", "audio", "canvas",
]

_MAX_HREF = 50
_MAX_TEXT = 30
PREVIEW_LENGTH = 1000
TRUNCATED_MARKER = "...\n\n[truncated - see full file for complete structure]"


@dataclass
class HtmlAnalysis:
    url: str
    temp_file_path: Path
    file_size: int
    preview: str


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def _attributes(element: Tag) -> str:
    attrs: List[str] = []
    for name in ("id", "class", "role"):
        value = element.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        if value:
            attrs.append(f'{name}="{value}"')

    href = element.get("href")
    if href and element.name == "a":
        attrs.append(f'href="{_truncate(href, _MAX_HREF)}"')

    return (" " + " ".join(attrs)) if attrs else ""


def _render(element: Tag, depth: int) -> List[str]:
    indent = "  " * depth
    attrs = _attributes(element)
    children = element.find_all(recursive=False)

    if not children:
        text = _truncate(element.get_text().strip(), _MAX_TEXT)
        if text:
            return [f"{indent}<{element.name}{attrs}>{text}</{element.name}>"]
        return [f"{indent}<{element.name}{attrs} />"]

    lines = [f"{indent}<{element.name}{attrs}>"]
    for child in children:
        lines.extend(_render(child, depth + 1))
    lines.append(f"{indent}</{element.name}>")
    return lines


def simplify_html(html: str) -> str:
    """Reduce *html* to an indented tag skeleton rooted at ``<body>``."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(_STRIPPED_TAGS):
        element.decompose()

    root: Optional[Tag] = soup.body or soup.html
    if root is None:
        root = soup.find()
    if root is None:
        return ""
    return "\n".join(_render(root, 0))


def analysis_filename(url: str, timestamp_ms: Optional[int] = None) -> str:
    """``https://docs.example.com/a/b`` → ``docs-example-com-a-b-<ms>.html``."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    parts = urlsplit(url)
    host = (parts.hostname or "").replace(".", "-")
    path = re.sub(r"-+", "-", re.sub(r"[^a-z0-9]", "-", parts.path, flags=re.IGNORECASE))
    if not host:
        return f"analysis-{timestamp_ms}.html"
    return f"{host}{path}-{timestamp_ms}.html"


def make_preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    if len(text) > limit:
        return text[:limit] + TRUNCATED_MARKER
    return text


async def analyze_html_structure(
    client: httpx.AsyncClient,
    url: str,
    *,
    output_dir: Path,
    max_retries: int = 3,
    retry_delay_ms: int = 1000,
) -> HtmlAnalysis:
    """Fetch *url*, write its simplified structure under *output_dir*.

    Args:
        client: Shared HTTP client.
        url: Page to analyse.
        output_dir: Directory for the analysis file; created if missing.
        max_retries: Retries for the page fetch.
        retry_delay_ms: Base back-off delay for the page fetch.

    Returns:
        An :class:`HtmlAnalysis` with the file path, its size in characters
        and a preview of at most ``PREVIEW_LENGTH`` characters.

    Raises:
        InvalidUrlError: If *url* is malformed.
        FetchError: If the page cannot be fetched.
    """
    validate_url(url)
    html = await fetch_text(
        client, url, max_retries=max_retries, retry_delay_ms=retry_delay_ms
    )
    simplified = simplify_html(html)

    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / analysis_filename(url)
    path.write_text(simplified, encoding="utf-8")
    logger.info("Wrote HTML structure of %s to %s", url, path)

    return HtmlAnalysis(
        url=url,
        temp_file_path=path,
        file_size=len(simplified),
        preview=make_preview(simplified),
    )
