"""Tests for strategy selection and end-to-end batch scraping.

Mocking strategy:
- ``respx`` patches ``httpx``; every router ends with a catch-all 404 so that
  native Markdown probes and ``llms.txt`` lookups the test does not care
  about resolve as "not found".
- Runs write into pytest's ``tmp_path``.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path

import httpx
import pytest
import respx

from markgrab.config import ScrapeConfiguration
from markgrab.errors import DiscoveryError, FetchError
from markgrab.scraper.models import ScrapeMode
from markgrab.scraper.orchestrator import discover, format_dry_run, scrape


# ---------------------------------------------------------------------------
# Fixtures / constants
# ---------------------------------------------------------------------------

_INDEX_HTML = """\
<html><body>
  <nav><a href="/a">A</a><a href="/b">B</a></nav>
  <main><p>Welcome.</p></main>
</body></html>
"""


def _page(heading: str) -> str:
    return f"<html><body><main><h1>{heading}</h1><p>Body of {heading}.</p></main></body></html>"


def _config(tmp_path: Path, base_url: str = "https://docs.example/", **overrides) -> ScrapeConfiguration:
    values = dict(
        base_url=base_url,
        content_area_selector="main",
        output_dir=tmp_path,
        max_retries=0,
        retry_delay_ms=0,
    )
    values.update(overrides)
    return ScrapeConfiguration(**values)


def _manifest(paths: list[str]) -> str:
    lines = ["# Example Docs", "", "## Docs"]
    lines += [f"- [Page {p.strip('/').upper()}](https://docs.example{p})" for p in paths]
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# discover
# ---------------------------------------------------------------------------

class TestDiscover:
    async def test_manifest_wins(self, tmp_path: Path) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.get("https://docs.example/llms.txt").mock(
                return_value=httpx.Response(200, text=_manifest(["/a", "/b"]))
            )
            router.route().mock(return_value=httpx.Response(404))
            async with httpx.AsyncClient() as client:
                plan = await discover(_config(tmp_path, follow_links_selector="nav a"), client)

        assert plan.mode is ScrapeMode.MANIFEST
        assert [link.title for link in plan.links] == ["Page A", "Page B"]
        assert plan.manifest is not None

    async def test_manifest_disabled_uses_selector(self, tmp_path: Path) -> None:
        with respx.mock(assert_all_called=False) as router:
            manifest = router.get("https://docs.example/llms.txt").mock(
                return_value=httpx.Response(200, text=_manifest(["/a"]))
            )
            router.get("https://docs.example/").mock(
                return_value=httpx.Response(200, text=_INDEX_HTML)
            )
            async with httpx.AsyncClient() as client:
                plan = await discover(
                    _config(tmp_path, follow_links_selector="nav a", use_llms_txt=False), client
                )

        assert manifest.call_count == 0
        assert plan.mode is ScrapeMode.FOLLOW
        assert [link.url for link in plan.links] == [
            "https://docs.example/a",
            "https://docs.example/b",
        ]

    async def test_manifest_with_only_external_links_falls_through(self, tmp_path: Path) -> None:
        external = "# Docs\n\n## Links\n- [Elsewhere](https://other.org/x)\n"
        with respx.mock(assert_all_called=False) as router:
            router.get("https://docs.example/llms.txt").mock(
                return_value=httpx.Response(200, text=external)
            )
            router.route().mock(return_value=httpx.Response(404))
            async with httpx.AsyncClient() as client:
                plan = await discover(_config(tmp_path, base_url="https://docs.example/guide"), client)

        assert plan.mode is ScrapeMode.SINGLE
        assert plan.links[0].title == "guide"

    async def test_selector_matching_nothing_is_an_error(self, tmp_path: Path) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.get("https://docs.example/").mock(
                return_value=httpx.Response(200, text=_INDEX_HTML)
            )
            router.route().mock(return_value=httpx.Response(404))
            async with httpx.AsyncClient() as client:
                with pytest.raises(DiscoveryError, match="No links found"):
                    await discover(_config(tmp_path, follow_links_selector="aside a"), client)

    async def test_selector_page_unreachable(self, tmp_path: Path) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.route().mock(return_value=httpx.Response(404))
            async with httpx.AsyncClient() as client:
                with pytest.raises(FetchError):
                    await discover(_config(tmp_path, follow_links_selector="nav a"), client)

    async def test_single_page_root_title(self, tmp_path: Path) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.route().mock(return_value=httpx.Response(404))
            async with httpx.AsyncClient() as client:
                plan = await discover(_config(tmp_path), client)

        assert plan.mode is ScrapeMode.SINGLE
        assert plan.links[0].url == "https://docs.example/"
        assert plan.links[0].title == "index"


# ---------------------------------------------------------------------------
# scrape
# ---------------------------------------------------------------------------

class TestScrape:
    async def test_follow_mode_end_to_end(self, tmp_path: Path) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.get("https://docs.example/").mock(
                return_value=httpx.Response(200, text=_INDEX_HTML)
            )
            router.get("https://docs.example/a").mock(
                return_value=httpx.Response(200, text=_page("Alpha"))
            )
            router.get("https://docs.example/b").mock(
                return_value=httpx.Response(200, text=_page("Beta"))
            )
            router.route().mock(return_value=httpx.Response(404))

            async with httpx.AsyncClient() as client:
                result = await scrape(
                    _config(tmp_path, follow_links_selector="nav a", use_native_md=False),
                    client=client,
                    progress_stream=io.StringIO(),
                )

        site_dir = tmp_path / "docs.example"
        assert result.plan.mode is ScrapeMode.FOLLOW
        assert result.output_dir == site_dir
        assert sorted(p.name for p in site_dir.iterdir()) == ["a.md", "b.md"]
        assert (site_dir / "a.md").read_text(encoding="utf-8").startswith("# Alpha")
        assert "Body of Beta." in (site_dir / "b.md").read_text(encoding="utf-8")
        assert result.stats is not None
        assert (result.stats.success, result.stats.failed) == (2, 0)

    async def test_colliding_titles_overwrite_with_warning(self, tmp_path: Path, caplog) -> None:
        caplog.set_level(logging.WARNING, logger="markgrab.scraper.orchestrator")
        index = (
            '<html><body><nav><a href="/x">Getting Started</a>'
            '<a href="/y">getting-started</a></nav></body></html>'
        )
        with respx.mock(assert_all_called=False) as router:
            router.get("https://docs.example/").mock(
                return_value=httpx.Response(200, text=index)
            )
            router.get("https://docs.example/x").mock(
                return_value=httpx.Response(200, text=_page("First"))
            )
            router.get("https://docs.example/y").mock(
                return_value=httpx.Response(200, text=_page("Second"))
            )
            router.route().mock(return_value=httpx.Response(404))

            async with httpx.AsyncClient() as client:
                result = await scrape(
                    _config(
                        tmp_path,
                        follow_links_selector="nav a",
                        max_concurrency=1,
                        use_native_md=False,
                    ),
                    client=client,
                    progress_stream=io.StringIO(),
                )

        site_dir = tmp_path / "docs.example"
        assert [p.name for p in site_dir.iterdir()] == ["getting_started.md"]
        assert "Body of Second." in (site_dir / "getting_started.md").read_text(encoding="utf-8")
        assert result.stats is not None
        assert result.stats.success == 2
        assert "overwrites" in caplog.text
        assert "https://docs.example/y" in caplog.text

    async def test_one_failing_page_does_not_stop_the_batch(self, tmp_path: Path) -> None:
        paths = ["/p1", "/p2", "/p3", "/p4", "/p5"]
        stream = io.StringIO()
        with respx.mock(assert_all_called=False) as router:
            router.get("https://docs.example/llms.txt").mock(
                return_value=httpx.Response(200, text=_manifest(paths))
            )
            for path in paths:
                status = 404 if path == "/p3" else 200
                router.get(f"https://docs.example{path}").mock(
                    return_value=httpx.Response(status, text=_page(path))
                )
            router.route().mock(return_value=httpx.Response(404))

            async with httpx.AsyncClient() as client:
                result = await scrape(_config(tmp_path), client=client, progress_stream=stream)

        stats = result.stats
        assert stats is not None
        assert (stats.total, stats.completed, stats.success, stats.failed) == (5, 5, 4, 1)
        assert stats.errors[0].url == "https://docs.example/p3"
        assert "HTTP 404" in stats.errors[0].error
        assert len(result.files) == 4
        assert not (tmp_path / "docs.example" / "page_p3.md").exists()
        assert "Failed pages:" in stream.getvalue()

    async def test_native_markdown_written_verbatim(self, tmp_path: Path) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.get("https://docs.example/guide.md").mock(
                return_value=httpx.Response(200, text="# Guide\n\nStraight from source.\n")
            )
            router.route().mock(return_value=httpx.Response(404))

            async with httpx.AsyncClient() as client:
                result = await scrape(
                    _config(tmp_path, base_url="https://docs.example/guide"), client=client
                )

        assert result.plan.mode is ScrapeMode.SINGLE
        written = tmp_path / "docs.example" / "guide.md"
        assert written.read_text(encoding="utf-8") == "# Guide\n\nStraight from source.\n"

    async def test_dry_run_writes_nothing(self, tmp_path: Path) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.get("https://docs.example/llms.txt").mock(
                return_value=httpx.Response(200, text=_manifest(["/a", "/b"]))
            )
            router.route().mock(return_value=httpx.Response(404))

            async with httpx.AsyncClient() as client:
                result = await scrape(_config(tmp_path, dry_run=True), client=client)

        assert result.dry_run is True
        assert result.stats is None
        assert len(result.plan.links) == 2
        assert not (tmp_path / "docs.example").exists()

    async def test_discovery_error_aborts_before_writing(self, tmp_path: Path) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.get("https://docs.example/").mock(
                return_value=httpx.Response(200, text=_INDEX_HTML)
            )
            router.route().mock(return_value=httpx.Response(404))

            async with httpx.AsyncClient() as client:
                with pytest.raises(DiscoveryError):
                    await scrape(_config(tmp_path, follow_links_selector=".none a"), client=client)

        assert not (tmp_path / "docs.example").exists()


# ---------------------------------------------------------------------------
# format_dry_run
# ---------------------------------------------------------------------------

class TestFormatDryRun:
    async def test_preview_truncated_to_ten(self, tmp_path: Path) -> None:
        paths = [f"/p{i}" for i in range(12)]
        with respx.mock(assert_all_called=False) as router:
            router.get("https://docs.example/llms.txt").mock(
                return_value=httpx.Response(200, text=_manifest(paths))
            )
            router.route().mock(return_value=httpx.Response(404))

            async with httpx.AsyncClient() as client:
                config = _config(tmp_path, dry_run=True)
                result = await scrape(config, client=client)

        report = format_dry_run(result, config)
        assert "Pages to scrape (12, mode: manifest):" in report
        assert "  10. Page P9 - https://docs.example/p9" in report
        assert "Page P10" not in report
        assert "... and 2 more" in report
        assert "Content selector: main" in report
