"""``llms.txt`` manifest parsing.

The manifest format (https://llmstxt.org) is a small Markdown subset::

    # Project title
    > One-line description
    Free-text details, possibly spanning several lines.

    ## Docs
    - [Installation](/docs/install.md): How to install
    - [API](https://example.com/api.md)

    ## Optional
    - [Changelog](/changelog.md)

The grammar has no nesting, so parsing is a single line-oriented pass.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional
from urllib.parse import urljoin, urlsplit

import httpx

from markgrab.scraper.models import (
    ManifestDocument,
    ManifestLink,
    ManifestSection,
    ManifestStats,
    SectionStats,
)

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "llms.txt"

# A manifest body shorter than this (after trimming) is treated as absent.
_MIN_MANIFEST_LENGTH = 10

_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)(?::\s*(.*))?")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _parse_link(text: str) -> Optional[ManifestLink]:
    """Parse ``[title](url)`` with an optional ``: notes`` suffix."""
    match = _LINK_PATTERN.search(text)
    if not match:
        return None
    title, url, notes = match.groups()
    notes = notes.strip() if notes else None
    return ManifestLink(title=title.strip(), url=url.strip(), notes=notes or None)


def parse_manifest(content: str) -> ManifestDocument:
    """Parse the Markdown text of an ``llms.txt`` file.

    Malformed list entries are dropped rather than reported, and a list line
    that appears before the first ``##`` section has nothing to attach to and
    is dropped too.  A repeated ``#`` title overwrites the earlier one.
    """
    document = ManifestDocument()
    current: Optional[ManifestSection] = None
    details_lines: List[str] = []
    in_details = False

    def _flush_details() -> None:
        nonlocal in_details
        if in_details and details_lines:
            details = "\n".join(details_lines).strip()
            if details:
                document.details = details
        details_lines.clear()
        in_details = False

    for line in content.split("\n"):
        stripped = line.strip()

        if not stripped:
            if in_details:
                details_lines.append("")
            continue

        if stripped.startswith("# "):
            _flush_details()
            document.title = stripped[2:].strip()
            continue

        if stripped.startswith(">"):
            document.description = stripped[1:].strip()
            in_details = True
            continue

        if stripped.startswith("## "):
            _flush_details()
            if current is not None:
                document.sections.append(current)
            title = stripped[3:].strip()
            current = ManifestSection(title=title, is_optional=title.lower() == "optional")
            continue

        if stripped.startswith(("-", "*")):
            if current is not None:
                link = _parse_link(stripped[1:].strip())
                if link is not None:
                    current.links.append(link)
            continue

        if in_details:
            details_lines.append(line.rstrip())

    _flush_details()
    if current is not None:
        document.sections.append(current)

    return document


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

def manifest_url(base_url: str) -> str:
    """Return ``<origin>/llms.txt`` for any page URL on the site."""
    parts = urlsplit(base_url)
    return f"{parts.scheme}://{parts.netloc}/{MANIFEST_FILENAME}"


async def fetch_manifest(
    client: httpx.AsyncClient, base_url: str
) -> Optional[ManifestDocument]:
    """Fetch and parse the site's ``llms.txt``.

    A missing manifest is the common case, so every failure (non-success
    status, transport error, empty body) returns ``None`` instead of raising.
    """
    url = manifest_url(base_url)
    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        logger.debug("No manifest at %s: %s", url, exc)
        return None

    if not response.is_success:
        logger.debug("No manifest at %s: HTTP %s", url, response.status_code)
        return None

    content = response.text
    if len(content.strip()) < _MIN_MANIFEST_LENGTH:
        logger.debug("Ignoring near-empty manifest at %s", url)
        return None

    return parse_manifest(content)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

def _same_host(url: str, base_url: str) -> Optional[bool]:
    """``True``/``False`` for a same-/cross-origin link, ``None`` if unparsable."""
    try:
        return urlsplit(urljoin(base_url, url)).hostname == urlsplit(base_url).hostname
    except ValueError:
        return None


def manifest_stats(
    document: ManifestDocument, base_url: str, include_optional: bool
) -> ManifestStats:
    """Count how many links each section contributes for *base_url*.

    External links are counted before the optional-section check, so a
    cross-origin link in a skipped optional section counts as external.
    """
    total_links = 0
    skipped_optional = 0
    skipped_external = 0
    sections: List[SectionStats] = []

    for section in document.sections:
        link_count = 0
        for link in section.links:
            same_host = _same_host(link.url, base_url)
            if same_host is None:
                continue
            if not same_host:
                skipped_external += 1
                continue
            if section.is_optional and not include_optional:
                skipped_optional += 1
                continue
            link_count += 1
        total_links += link_count
        sections.append(SectionStats(section.title, link_count, section.is_optional))

    included = [s for s in sections if not s.is_optional or include_optional]
    return ManifestStats(
        total_sections=len(included),
        total_links=total_links,
        skipped_optional_links=skipped_optional,
        skipped_external_links=skipped_external,
        sections=included,
    )
