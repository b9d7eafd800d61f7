"""Centralised settings for markgrab.

Three layers feed a scrape run, highest priority first:

1. Values passed explicitly on the command line (or in a tool request).
2. The per-domain table of a TOML config file, keyed by hostname.
3. Built-in defaults from :class:`Settings`, which can themselves be
   overridden via environment variables or a ``.env`` file in the project
   root (loaded automatically when this module is imported).

The merged result is a frozen :class:`ScrapeConfiguration` that stays
unchanged for the whole run.
"""

from __future__ import annotations

import os
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from markgrab.errors import ConfigError, InvalidUrlError
from markgrab.scraper.naming import extract_domain

# Load .env from the project root (one level up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------
    output_dir: Path = field(
        default_factory=lambda: Path(os.environ.get("MARKGRAB_OUTPUT_DIR", "./"))
    )
    content_area_selector: str = field(
        default_factory=lambda: os.environ.get("MARKGRAB_CONTENT_SELECTOR", "body")
    )
    analysis_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get(
                "MARKGRAB_ANALYSIS_DIR",
                Path(tempfile.gettempdir()) / "markgrab-analysis",
            )
        )
    )

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------
    max_retries: int = field(
        default_factory=lambda: int(os.environ.get("MARKGRAB_MAX_RETRIES", "3"))
    )
    retry_delay_ms: int = field(
        default_factory=lambda: int(os.environ.get("MARKGRAB_RETRY_DELAY_MS", "1000"))
    )
    max_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("MARKGRAB_MAX_CONCURRENCY", "10"))
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("MARKGRAB_REQUEST_TIMEOUT", "30.0"))
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "MARKGRAB_USER_AGENT",
            "Mozilla/5.0 (compatible; markgrab/0.1; +https://llmstxt.org)",
        )
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("MARKGRAB_LOG_LEVEL", "WARNING")
    )

    def ensure_analysis_dir(self) -> Path:
        """Create the HTML analysis directory if it does not exist."""
        self.analysis_dir.mkdir(parents=True, exist_ok=True)
        return self.analysis_dir


# Module-level singleton, import this everywhere:
#   from markgrab.config import settings
settings = Settings()


# ---------------------------------------------------------------------------
# Run configuration
# ---------------------------------------------------------------------------

def validate_url(url: str) -> str:
    """Return *url* unchanged if it is an absolute http(s) URL.

    Raises:
        InvalidUrlError: If the URL has no scheme/host or an unsupported scheme.
    """
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError as exc:
        raise InvalidUrlError(f"Invalid URL: {url}") from exc
    if parts.scheme not in ("http", "https") or not host:
        raise InvalidUrlError(f"Invalid URL: {url}")
    return url


@dataclass(frozen=True)
class ScrapeConfiguration:
    """Resolved operating parameters for one crawl run."""

    base_url: str
    follow_links_selector: str = ""
    content_area_selector: str = "body"
    output_dir: Path = Path("./")
    use_native_md: bool = True
    use_llms_txt: bool = True
    include_optional: bool = False
    dry_run: bool = False
    max_retries: int = 3
    retry_delay_ms: int = 1000
    max_concurrency: int = 10

    def __post_init__(self) -> None:
        validate_url(self.base_url)
        if self.max_retries < 0:
            raise ConfigError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.retry_delay_ms < 0:
            raise ConfigError(f"retry_delay_ms must be >= 0, got {self.retry_delay_ms}")
        if self.max_concurrency < 1:
            raise ConfigError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if not self.content_area_selector.strip():
            raise ConfigError("content_area_selector must not be empty")

    @property
    def domain(self) -> str:
        """Hostname of the base URL without a leading ``www.``."""
        return extract_domain(self.base_url)

    @property
    def site_output_dir(self) -> Path:
        """Directory the run writes into: ``<output_dir>/<domain>``."""
        return Path(self.output_dir) / self.domain


# ---------------------------------------------------------------------------
# TOML config file
# ---------------------------------------------------------------------------

class DomainConfig(BaseModel):
    """Per-domain defaults read from one table of the TOML config file.

    Keys are camelCase; the snake_case field names are accepted as well.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    follow_links_selector: Optional[str] = Field(None, alias="followLinksSelector")
    content_area_selector: Optional[str] = Field(None, alias="contentAreaSelector")
    output_dir: Optional[str] = Field(None, alias="outputDir")
    use_native_md: Optional[bool] = Field(None, alias="useNativeMd")
    use_llms_txt: Optional[bool] = Field(None, alias="useLlmsTxt")
    include_optional: Optional[bool] = Field(None, alias="includeOptional")
    max_retries: Optional[int] = Field(None, alias="maxRetries", ge=0)
    retry_delay_ms: Optional[int] = Field(None, alias="retryDelay", ge=0)
    max_concurrency: Optional[int] = Field(None, alias="maxConcurrent", ge=1)


def load_config(config_path: str | Path) -> dict[str, DomainConfig]:
    """Read a TOML config file keyed by hostname.

    Raises:
        ConfigError: If the file does not exist, is not valid TOML, or a
            domain table contains unknown keys or values of the wrong type.
    """
    path = Path(config_path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with path.open("rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc

    config: dict[str, DomainConfig] = {}
    for domain, table in raw.items():
        if not isinstance(table, dict):
            raise ConfigError(f"Config entry {domain!r} must be a table")
        try:
            config[domain] = DomainConfig.model_validate(table)
        except ValidationError as exc:
            raise ConfigError(f"Invalid config for {domain!r}: {exc}") from exc
    return config


def get_domain_config(
    config: dict[str, DomainConfig], url: str
) -> Optional[DomainConfig]:
    """Return the table matching *url*'s hostname (``www.`` ignored), if any."""
    return config.get(extract_domain(url))


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def build_scrape_configuration(
    url: str,
    *,
    follow_links_selector: Optional[str] = None,
    content_area_selector: Optional[str] = None,
    output_dir: Optional[str | Path] = None,
    use_native_md: Optional[bool] = None,
    use_llms_txt: Optional[bool] = None,
    include_optional: Optional[bool] = None,
    dry_run: bool = False,
    max_retries: Optional[int] = None,
    retry_delay_ms: Optional[int] = None,
    max_concurrency: Optional[int] = None,
    config_path: Optional[str | Path] = None,
    settings: Settings = settings,
) -> ScrapeConfiguration:
    """Merge explicit values, the matching config-file table and defaults.

    ``None`` means "not given" for every override, so an explicit ``False``
    or ``0`` still wins over the config file.

    Raises:
        InvalidUrlError: If *url* is malformed (checked before anything else).
        ConfigError: If *config_path* cannot be loaded or a value is out of range.
    """
    validate_url(url)

    domain_config = DomainConfig()
    if config_path is not None:
        found = get_domain_config(load_config(config_path), url)
        if found is not None:
            domain_config = found

    return ScrapeConfiguration(
        base_url=url,
        follow_links_selector=_first(
            follow_links_selector, domain_config.follow_links_selector, ""
        ),
        content_area_selector=_first(
            content_area_selector,
            domain_config.content_area_selector,
            settings.content_area_selector,
        ),
        output_dir=Path(_first(output_dir, domain_config.output_dir, settings.output_dir)),
        use_native_md=_first(use_native_md, domain_config.use_native_md, True),
        use_llms_txt=_first(use_llms_txt, domain_config.use_llms_txt, True),
        include_optional=_first(include_optional, domain_config.include_optional, False),
        dry_run=dry_run,
        max_retries=_first(max_retries, domain_config.max_retries, settings.max_retries),
        retry_delay_ms=_first(
            retry_delay_ms, domain_config.retry_delay_ms, settings.retry_delay_ms
        ),
        max_concurrency=_first(
            max_concurrency, domain_config.max_concurrency, settings.max_concurrency
        ),
    )
