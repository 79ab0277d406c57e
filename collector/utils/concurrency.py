"""Bounded fan-out for async work."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Sequence[T],
    worker: Callable[[int, T], Awaitable[R]],
    *,
    limit: int,
) -> list[R]:
    """Run ``worker(index, item)`` for every item with at most ``limit`` in flight.

    Results are returned in input order regardless of completion order. If any
    worker raises, every other in-flight or queued worker is cancelled before
    the error propagates; the same happens when the caller is cancelled.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")

    semaphore = asyncio.Semaphore(limit)

    async def _run(index: int, item: T) -> R:
        async with semaphore:
            return await worker(index, item)

    tasks = [asyncio.create_task(_run(index, item)) for index, item in enumerate(items)]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


__all__ = ["gather_bounded"]
