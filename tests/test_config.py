"""Tests for settings, TOML config loading and run-configuration merging."""

from __future__ import annotations

from pathlib import Path

import pytest

from markgrab.config import (
    ScrapeConfiguration,
    Settings,
    build_scrape_configuration,
    get_domain_config,
    load_config,
    validate_url,
)
from markgrab.errors import ConfigError, InvalidUrlError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_CONFIG_TOML = """\
["docs.example.com"]
followLinksSelector = "nav a"
contentAreaSelector = "main"
maxConcurrent = 4
useNativeMd = false

["other.org"]
output_dir = "./out"
"""


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "markgrab.toml"
    path.write_text(_CONFIG_TOML, encoding="utf-8")
    return path


@pytest.fixture()
def defaults(tmp_path: Path) -> Settings:
    return Settings(
        output_dir=tmp_path,
        content_area_selector="body",
        max_retries=3,
        retry_delay_ms=1000,
        max_concurrency=10,
    )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class TestSettings:
    def test_env_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("MARKGRAB_MAX_RETRIES", "7")
        monkeypatch.setenv("MARKGRAB_CONTENT_SELECTOR", "article")
        s = Settings()
        assert s.max_retries == 7
        assert s.content_area_selector == "article"

    def test_ensure_analysis_dir(self, tmp_path: Path) -> None:
        target = tmp_path / "analysis"
        s = Settings(analysis_dir=target)
        assert s.ensure_analysis_dir() == target
        assert target.is_dir()


# ---------------------------------------------------------------------------
# URL validation and ScrapeConfiguration
# ---------------------------------------------------------------------------

class TestScrapeConfiguration:
    def test_valid_url_passes(self) -> None:
        assert validate_url("https://example.com/docs") == "https://example.com/docs"

    @pytest.mark.parametrize("url", ["not a url", "ftp://example.com", "https://", ""])
    def test_invalid_url_rejected(self, url: str) -> None:
        with pytest.raises(InvalidUrlError):
            ScrapeConfiguration(base_url=url)

    def test_invalid_url_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            validate_url("nope")

    def test_out_of_range_values_rejected(self) -> None:
        with pytest.raises(ConfigError):
            ScrapeConfiguration(base_url="https://example.com", max_retries=-1)
        with pytest.raises(ConfigError):
            ScrapeConfiguration(base_url="https://example.com", max_concurrency=0)

    def test_site_output_dir(self, tmp_path: Path) -> None:
        config = ScrapeConfiguration(base_url="https://www.example.com/a", output_dir=tmp_path)
        assert config.domain == "example.com"
        assert config.site_output_dir == tmp_path / "example.com"

    def test_frozen(self) -> None:
        config = ScrapeConfiguration(base_url="https://example.com")
        with pytest.raises(AttributeError):
            config.max_retries = 5  # type: ignore[misc]


# ---------------------------------------------------------------------------
# TOML config file
# ---------------------------------------------------------------------------

class TestLoadConfig:
    def test_camel_and_snake_keys(self, config_file: Path) -> None:
        config = load_config(config_file)
        docs = config["docs.example.com"]
        assert docs.follow_links_selector == "nav a"
        assert docs.max_concurrency == 4
        assert docs.use_native_md is False
        assert config["other.org"].output_dir == "./out"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("this is = = not toml", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_unknown_key_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text('["example.com"]\nfollowSelector = "a"\n', encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_domain_lookup_ignores_www(self, config_file: Path) -> None:
        config = load_config(config_file)
        assert get_domain_config(config, "https://www.other.org/x") is not None
        assert get_domain_config(config, "https://unknown.net/") is None


class TestBuildScrapeConfiguration:
    def test_defaults(self, defaults: Settings) -> None:
        config = build_scrape_configuration("https://example.com", settings=defaults)
        assert config.follow_links_selector == ""
        assert config.content_area_selector == "body"
        assert config.output_dir == defaults.output_dir
        assert config.use_native_md is True
        assert config.use_llms_txt is True
        assert config.include_optional is False
        assert config.max_concurrency == 10

    def test_domain_config_applies(self, config_file: Path, defaults: Settings) -> None:
        config = build_scrape_configuration(
            "https://docs.example.com/guide", config_path=config_file, settings=defaults
        )
        assert config.follow_links_selector == "nav a"
        assert config.content_area_selector == "main"
        assert config.max_concurrency == 4
        assert config.use_native_md is False

    def test_explicit_values_win(self, config_file: Path, defaults: Settings) -> None:
        config = build_scrape_configuration(
            "https://docs.example.com/guide",
            content_area_selector="article",
            use_native_md=True,
            max_concurrency=2,
            config_path=config_file,
            settings=defaults,
        )
        assert config.content_area_selector == "article"
        assert config.use_native_md is True
        assert config.max_concurrency == 2
        assert config.follow_links_selector == "nav a"

    def test_invalid_url_checked_first(self, tmp_path: Path, defaults: Settings) -> None:
        with pytest.raises(InvalidUrlError):
            build_scrape_configuration(
                "not a url", config_path=tmp_path / "missing.toml", settings=defaults
            )
