"""
Bounded-concurrency runner for per-item coroutines.

A semaphore with C permits guards every item's operation, so at most C run
at once and a freed permit admits the next waiting item immediately.
Failures are captured per item; siblings are never cancelled.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: list[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive lists of at most ``size``."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}.")
    return [items[i:i + size] for i in range(0, len(items), size)]


class ConcurrencyLimiter:
    """Runs an async operation over many items, at most ``concurrency`` at a time."""

    def __init__(self, concurrency: int):
        if concurrency < 1:
            raise ValueError(f"Concurrency must be at least 1, got {concurrency}.")
        self.concurrency = concurrency
        self.in_flight = 0
        self.high_water = 0

    async def _guarded(
        self,
        semaphore: asyncio.Semaphore,
        item: T,
        operation: Callable[[T], Awaitable[R]],
        on_error: Callable[[T, BaseException], R] | None,
    ):
        async with semaphore:
            self.in_flight += 1
            self.high_water = max(self.high_water, self.in_flight)
            try:
                return await operation(item)
            except Exception as exc:
                if on_error is None:
                    return exc
                return on_error(item, exc)
            finally:
                self.in_flight -= 1

    async def run(
        self,
        items: Iterable[T],
        operation: Callable[[T], Awaitable[R]],
        on_error: Callable[[T, BaseException], R] | None = None,
    ) -> list:
        """
        Drive every item through ``operation`` and wait for all of them.

        Args:
            items: Work items; each is processed exactly once.
            operation: Coroutine function applied to each item.
            on_error: Converts an exception raised for an item into that
                      item's result.  Without it the exception object itself
                      is returned in its place.

        Returns:
            One result per item, in completion order.
        """
        items = list(items)
        if not items:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = [
            asyncio.ensure_future(self._guarded(semaphore, item, operation, on_error))
            for item in items
        ]
        results = []
        for finished in asyncio.as_completed(tasks):
            results.append(await finished)
        return results
