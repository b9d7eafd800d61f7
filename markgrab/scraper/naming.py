"""Output naming: filenames derived from page titles, directories from hosts."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

_UNSAFE_CHARS = re.compile(r"[^a-z0-9\s.-]", re.IGNORECASE)
_SEPARATORS = re.compile(r"[\s.-]+")


def sanitize_filename(text: str) -> str:
    """Turn a page title into a file stem.

    ``"API > Bun.Glob"`` becomes ``"api_bun_glob"``.  A title with no usable
    characters becomes ``"untitled"``.
    """
    cleaned = text.replace(">", "")
    cleaned = _UNSAFE_CHARS.sub("", cleaned)
    cleaned = _SEPARATORS.sub("_", cleaned).lower()
    return cleaned or "untitled"


def extract_domain(url: str) -> str:
    """Return the hostname of *url* without a leading ``www.``.

    Returns ``"unknown"`` when the URL has no parsable host.
    """
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return "unknown"
    if not host:
        return "unknown"
    return re.sub(r"^www\.", "", host)


def title_from_url(url: str) -> str:
    """Last non-empty path segment of *url*, or ``"index"`` for the root."""
    segments = [s for s in urlsplit(url).path.split("/") if s]
    return segments[-1] if segments else "index"
