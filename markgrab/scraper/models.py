"""Data models for the scraper pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class PageLink:
    """A discovered scrape target."""

    url: str
    title: str
    is_full_content: bool = False


@dataclass
class ManifestLink:
    """One ``- [title](url): notes`` entry of an ``llms.txt`` section."""

    title: str
    url: str
    notes: Optional[str] = None


@dataclass
class ManifestSection:
    """An ``## heading`` of an ``llms.txt`` file and the links listed under it."""

    title: str
    is_optional: bool = False
    links: List[ManifestLink] = field(default_factory=list)


@dataclass
class ManifestDocument:
    """A parsed ``llms.txt`` manifest."""

    title: str = ""
    description: Optional[str] = None
    details: Optional[str] = None
    sections: List[ManifestSection] = field(default_factory=list)


@dataclass
class SectionStats:
    title: str
    link_count: int
    is_optional: bool


@dataclass
class ManifestStats:
    """How a manifest's links split up relative to one origin."""

    total_sections: int
    total_links: int
    skipped_optional_links: int
    skipped_external_links: int
    sections: List[SectionStats] = field(default_factory=list)


class ScrapeMode(str, Enum):
    """The discovery strategy a run committed to."""

    MANIFEST = "manifest"
    FOLLOW = "follow"
    SINGLE = "single"


@dataclass
class DiscoveryPlan:
    """The ordered set of targets one run will resolve."""

    mode: ScrapeMode
    links: List[PageLink]
    manifest: Optional[ManifestDocument] = None


@dataclass
class PageError:
    url: str
    error: str


@dataclass
class OutcomeStats:
    """Per-batch counters, owned and mutated by one ``ProgressTracker``."""

    total: int
    completed: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    in_progress: int = 0
    errors: List[PageError] = field(default_factory=list)


@dataclass
class ScrapeResult:
    """Everything a caller needs to report on a finished run."""

    plan: DiscoveryPlan
    output_dir: Path
    dry_run: bool = False
    stats: Optional[OutcomeStats] = None
    files: List[Path] = field(default_factory=list)
    duration: float = 0.0
