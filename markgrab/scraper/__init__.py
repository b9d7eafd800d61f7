"""Scraper package — discovery, resolution and batch orchestration.

Models, manifest parsing and link discovery are re-exported here.  The
orchestrator depends on ``markgrab.config`` and must be imported directly::

    from markgrab.scraper.orchestrator import scrape
"""

from markgrab.scraper.discovery import links_from_manifest, links_from_selector
from markgrab.scraper.manifest import manifest_stats, parse_manifest
from markgrab.scraper.models import (
    DiscoveryPlan,
    ManifestDocument,
    ManifestLink,
    ManifestSection,
    OutcomeStats,
    PageLink,
    ScrapeMode,
    ScrapeResult,
)
from markgrab.scraper.naming import extract_domain, sanitize_filename

__all__ = [
    "parse_manifest",
    "links_from_manifest",
    "links_from_selector",
    "manifest_stats",
    "DiscoveryPlan",
    "ManifestDocument",
    "ManifestLink",
    "ManifestSection",
    "OutcomeStats",
    "PageLink",
    "ScrapeMode",
    "ScrapeResult",
    "extract_domain",
    "sanitize_filename",
]
