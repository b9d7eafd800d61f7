"""Error taxonomy shared by the scraper, the CLI and the tool server.

Every error raised on purpose by markgrab derives from :class:`ScrapeError`
so the outer surfaces can map the whole family with a single ``except``.
"""

from __future__ import annotations

from typing import Optional


class ScrapeError(Exception):
    """Base class for all markgrab errors."""


class FetchError(ScrapeError):
    """A fetch returned a non-success status or failed at the transport level.

    Raised once retries are exhausted, or immediately for non-retryable
    failures.  The message of a status failure always starts with
    ``HTTP <code>`` so the retry executor can classify it.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class SelectorNotFoundError(ScrapeError):
    """The content selector matched no element in the fetched HTML."""

    def __init__(self, selector: str, url: str = "") -> None:
        super().__init__(f"Content area not found: {selector}")
        self.selector = selector
        self.url = url


class InvalidUrlError(ScrapeError, ValueError):
    """A target or configuration URL could not be parsed."""


class ConfigError(ScrapeError):
    """A config file is missing or unparsable, or a setting is out of range."""


class DiscoveryError(ScrapeError):
    """Link discovery produced nothing usable for an explicit strategy."""
