"""markgrab — documentation site to Markdown scraper.

Public re-exports so callers can write::

    from markgrab import scrape, build_scrape_configuration
"""

from markgrab.config import build_scrape_configuration, settings
from markgrab.errors import (
    ConfigError,
    DiscoveryError,
    FetchError,
    InvalidUrlError,
    ScrapeError,
    SelectorNotFoundError,
)
from markgrab.scraper.orchestrator import discover, scrape

__version__ = "0.1.0"

__all__ = [
    "build_scrape_configuration",
    "settings",
    "scrape",
    "discover",
    "ScrapeError",
    "FetchError",
    "SelectorNotFoundError",
    "InvalidUrlError",
    "ConfigError",
    "DiscoveryError",
]
