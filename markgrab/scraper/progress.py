"""Batch outcome tracking and terminal progress rendering."""

from __future__ import annotations

import copy
import time
from typing import Callable, List, Optional, TextIO

from markgrab.scraper.models import OutcomeStats, PageError


class ProgressTracker:
    """Counts page outcomes for one batch and draws a progress bar.

    Every page goes through exactly one :meth:`start` followed by exactly one
    of :meth:`success`, :meth:`fail` or :meth:`skip`.  All calls come from
    the event loop thread, so the counters need no lock.
    """

    def __init__(
        self,
        total: int,
        *,
        stream: Optional[TextIO] = None,
        update_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stats = OutcomeStats(total=total)
        self._stream = stream
        self._update_interval = update_interval
        self._clock = clock
        self._start_time = clock()
        self._end_time: Optional[float] = None
        self._last_update: Optional[float] = None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._stats.in_progress += 1
        self._update()

    def success(self) -> None:
        self._finish_one()
        self._stats.success += 1
        self._update()

    def fail(self, url: str, error: str) -> None:
        self._finish_one()
        self._stats.failed += 1
        self._stats.errors.append(PageError(url=url, error=error))
        self._update()

    def skip(self) -> None:
        self._finish_one()
        self._stats.skipped += 1
        self._update()

    def _finish_one(self) -> None:
        self._stats.in_progress -= 1
        self._stats.completed += 1
        if self._stats.completed == self._stats.total:
            self._end_time = self._clock()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def stats(self) -> OutcomeStats:
        """A snapshot copy; mutating it does not affect the tracker."""
        return copy.deepcopy(self._stats)

    @property
    def duration(self) -> float:
        """Seconds from construction to the last completion (or to now)."""
        end = self._end_time if self._end_time is not None else self._clock()
        return end - self._start_time

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    @staticmethod
    def render_bar(percentage: int, width: int = 20) -> str:
        filled = percentage * width // 100
        return "[" + "█" * filled + "░" * (width - filled) + "]"

    def _update(self) -> None:
        if self._stream is None:
            return

        stats = self._stats
        done = stats.completed >= stats.total
        now = self._clock()
        if (
            not done
            and self._last_update is not None
            and now - self._last_update < self._update_interval
        ):
            return
        self._last_update = now

        percentage = stats.completed * 100 // stats.total if stats.total else 100
        line = (
            f"\r{self.render_bar(percentage)} {percentage}% "
            f"({stats.completed}/{stats.total}) | ✅ {stats.success}"
        )
        if stats.failed:
            line += f" ❌ {stats.failed}"
        if stats.skipped:
            line += f" ⏭️  {stats.skipped}"
        if stats.in_progress:
            line += f" ⏳ {stats.in_progress}"
        if done:
            line += "\n"

        self._stream.write(line)
        self._stream.flush()

    def summary(self) -> str:
        """Multi-line end-of-batch report, failed pages included."""
        stats = self._stats
        lines: List[str] = [
            "=== Scrape complete ===",
            f"Total: {stats.total} page(s)",
            f"✅ Succeeded: {stats.success}",
        ]
        if stats.failed:
            lines.append(f"❌ Failed: {stats.failed}")
            lines.append("")
            lines.append("Failed pages:")
            for page_error in stats.errors:
                lines.append(f"  - {page_error.url}")
                lines.append(f"    Error: {page_error.error}")
        if stats.skipped:
            lines.append(f"⏭️  Skipped: {stats.skipped}")
        lines.append(f"⏱️  Duration: {self.duration:.1f}s")
        return "\n".join(lines)

    def show_summary(self) -> None:
        if self._stream is not None:
            self._stream.write("\n" + self.summary() + "\n")
            self._stream.flush()
