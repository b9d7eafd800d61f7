"""Tests for the bounded-concurrency batch runner."""

from __future__ import annotations

import asyncio

import pytest

from markgrab.scraper.scheduler import BoundedScheduler


class TestBoundedScheduler:
    async def test_never_exceeds_bound(self) -> None:
        active = 0
        peak = 0

        async def task() -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.001)
            active -= 1

        results = await BoundedScheduler(10).run(task for _ in range(50))

        assert len(results) == 50
        assert peak <= 10
        assert peak > 1

    async def test_results_keep_submission_order(self) -> None:
        def make(i: int):
            async def op() -> int:
                await asyncio.sleep(0.001 * (5 - i))
                return i
            return op

        results = await BoundedScheduler(3).run(make(i) for i in range(5))
        assert results == [0, 1, 2, 3, 4]

    async def test_failure_does_not_stop_siblings(self) -> None:
        async def ok() -> str:
            return "ok"

        async def bad() -> str:
            raise RuntimeError("nope")

        results = await BoundedScheduler(2).run([ok, bad, ok])

        assert results[0] == "ok"
        assert isinstance(results[1], RuntimeError)
        assert results[2] == "ok"

    def test_invalid_bound(self) -> None:
        with pytest.raises(ValueError):
            BoundedScheduler(0)
