#!/usr/bin/env python3
"""
Batch Runner

Runs an async unit of work over many items with a bounded number of
concurrent invocations, recording a BatchOutcome for every item.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Generic, TypeAlias, TypeVar

from weread_export.constants import DEFAULT_CONCURRENCY, DEFAULT_DELAY_MS
from weread_export.models import BatchOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback: TypeAlias = Callable[[BatchOutcome[Any, Any], int, int], None]


async def sleep_ms(delay_ms: int) -> None:
    if delay_ms > 0:
        await asyncio.sleep(delay_ms / 1000)


class BatchRunner(Generic[T, R]):
    """
    Bounded-concurrency driver for a unit of work.

    With ``concurrency == 1`` items run strictly one after another, pausing
    ``delay_ms`` between them. Otherwise up to ``concurrency`` items are in
    flight at once, gated by a semaphore.
    """

    def __init__(
        self,
        concurrency: int = DEFAULT_CONCURRENCY,
        delay_ms: int = DEFAULT_DELAY_MS,
        stop_on_error: bool = False,
        on_progress: ProgressCallback | None = None,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        if delay_ms < 0:
            raise ValueError(f"delay_ms must not be negative, got {delay_ms}")

        self.concurrency = concurrency
        self.delay_ms = delay_ms
        self.stop_on_error = stop_on_error
        self.on_progress = on_progress

        self.semaphore = asyncio.Semaphore(concurrency)
        self.stats = {"started": 0, "completed": 0, "failed": 0}
        self.active = 0
        self.peak_active = 0
        self._stopped = False
        self._done = 0
        self._total = 0

    async def run_item(self, item: T, func: Callable[[T], Awaitable[R]]) -> BatchOutcome[T, R]:
        """Run the unit of work for one item, capturing any failure in the outcome."""
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        self.stats["started"] += 1

        try:
            value = await func(item)
            self.stats["completed"] += 1
            outcome = BatchOutcome(item=item, action="completed", value=value)
        except Exception as e:
            self.stats["failed"] += 1
            error_msg = f"{type(e).__name__}: {e}"
            logger.error(f"[{item}] Batch item failed: {error_msg}", exc_info=True)
            outcome = BatchOutcome(item=item, action="failed", error=error_msg, exception=e)
            if self.stop_on_error:
                self._stopped = True
        finally:
            self.active -= 1

        self._done += 1
        if self.on_progress is not None:
            self.on_progress(outcome, self._done, self._total)
        return outcome

    async def _run_gated(self, item: T, func: Callable[[T], Awaitable[R]]) -> BatchOutcome[T, R] | None:
        async with self.semaphore:
            if self._stopped:
                return None
            return await self.run_item(item, func)

    async def run(self, items: Iterable[T], func: Callable[[T], Awaitable[R]]) -> list[BatchOutcome[T, R]]:
        """
        Process every item exactly once.

        Args:
            items: Work items, processed in the given order
            func: Async unit of work applied to each item

        Returns:
            Outcomes in the original item order. With ``stop_on_error`` the
            items never started after the first failure are omitted.
        """
        items = list(items)
        self._total = len(items)
        self._done = 0
        logger.info(f"Running {len(items)} items (concurrency={self.concurrency}, delay={self.delay_ms}ms)")

        if self.concurrency == 1:
            outcomes: list[BatchOutcome[T, R]] = []
            for index, item in enumerate(items):
                outcome = await self.run_item(item, func)
                outcomes.append(outcome)
                if self._stopped:
                    break
                if index < len(items) - 1:
                    await sleep_ms(self.delay_ms)
        else:
            tasks = [asyncio.create_task(self._run_gated(item, func)) for item in items]
            results = await asyncio.gather(*tasks)
            outcomes = [outcome for outcome in results if outcome is not None]

        logger.info(
            f"Batch finished: {self.stats['completed']} completed, {self.stats['failed']} failed "
            f"(peak concurrency {self.peak_active})"
        )
        return outcomes

    def get_statistics(self) -> dict[str, Any]:
        """Get current batch statistics."""
        return {**self.stats, "active": self.active, "peak_active": self.peak_active}


async def batch_run(
    items: Iterable[T],
    func: Callable[[T], Awaitable[R]],
    concurrency: int = DEFAULT_CONCURRENCY,
    delay_ms: int = DEFAULT_DELAY_MS,
    stop_on_error: bool = False,
    on_progress: ProgressCallback | None = None,
) -> list[BatchOutcome[T, R]]:
    """Run ``func`` over ``items`` with at most ``concurrency`` invocations in flight."""
    runner: BatchRunner[T, R] = BatchRunner(
        concurrency=concurrency, delay_ms=delay_ms, stop_on_error=stop_on_error, on_progress=on_progress
    )
    return await runner.run(items, func)
