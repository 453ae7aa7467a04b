"""Bounded concurrency helpers for the scheduler."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterator, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def iter_groups(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive groups of at most size items, preserving order."""

    if size <= 0:
        raise ValueError("group size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


class WorkerPool:
    """Run jobs concurrently with at most ``limit`` in flight.

    ``run_group`` waits for every job in the group before returning, so callers
    get window semantics: the next group only starts after this one drains.
    Job exceptions are returned in place of results, never raised, so one
    failure does not cancel its siblings.
    """

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        self.limit = limit
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.in_flight = 0
        self.peak_in_flight = 0

    def _get_semaphore(self) -> asyncio.Semaphore:
        # A semaphore belongs to one event loop; the CLI and tests start a new
        # loop per command.
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._loop is not loop:
            self._semaphore = asyncio.Semaphore(self.limit)
            self._loop = loop
        return self._semaphore

    async def _run_one(self, job: Callable[[], Awaitable[Any]]) -> Any:
        async with self._get_semaphore():
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                return await job()
            finally:
                self.in_flight -= 1

    async def run_group(self, jobs: Sequence[Callable[[], Awaitable[Any]]]) -> list[Any]:
        return await asyncio.gather(*(self._run_one(job) for job in jobs), return_exceptions=True)
