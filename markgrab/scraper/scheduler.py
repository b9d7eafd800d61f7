"""Bounded-parallelism batch runner."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, List, TypeVar, Union

T = TypeVar("T")


class BoundedScheduler:
    """Run deferred coroutines with at most ``max_concurrency`` in flight.

    Operations start in submission order as slots free up.  There is no
    cancellation: a batch ends when every operation has settled.
    """

    def __init__(self, max_concurrency: int) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.max_concurrency = max_concurrency

    async def run(
        self, operations: Iterable[Callable[[], Awaitable[T]]]
    ) -> List[Union[T, BaseException]]:
        """Await every operation; results and raised exceptions keep submission order."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _guarded(operation: Callable[[], Awaitable[T]]) -> T:
            async with semaphore:
                return await operation()

        return await asyncio.gather(
            *(_guarded(op) for op in operations), return_exceptions=True
        )
