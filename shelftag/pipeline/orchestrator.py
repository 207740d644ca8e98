"""
Concurrency Orchestrator

Bounded fan-out / fan-in for per-item remote operations.

Design Decisions:
1. Worker pool: N workers pull items from a work queue and push
   (item, result-or-error) pairs to a result queue
2. Isolation: one item's exception is recorded, never propagated to the batch
3. No shared state: callers aggregate results after the batch completes,
   so caches and id sets are only mutated outside the concurrent region
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Iterable, Optional, TypeVar

from loguru import logger

from shelftag.errors import OperationAbortedError


T = TypeVar("T")
R = TypeVar("R")

# Per-phase in-flight limits
SEARCH_CONCURRENCY = 25
FORMAT_FETCH_CONCURRENCY = 10


@dataclass
class ItemResult(Generic[T, R]):
    """Outcome of one item's operation, correlated with its input."""

    item: T
    value: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport(Generic[T, R]):
    """Successes and failures of a batch."""

    successes: list[tuple[T, R]] = field(default_factory=list)
    failures: list[tuple[T, Exception]] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: Iterable[ItemResult[T, R]]) -> "BatchReport[T, R]":
        report: BatchReport[T, R] = cls()
        for result in results:
            if result.ok:
                report.successes.append((result.item, result.value))
            else:
                report.failures.append((result.item, result.error))
        return report

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count


async def run_bounded(
    items: Iterable[T],
    operation: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[ItemResult[T, R]]:
    """
    Run `operation` over every item with at most `limit` in flight.

    Args:
        items: Work items
        operation: Per-item coroutine function
        limit: Maximum concurrent operations

    Returns:
        One ItemResult per item, in completion order
    """
    if limit < 1:
        raise ValueError(f"limit must be positive, got {limit}")

    items = list(items)
    if not items:
        return []

    work: asyncio.Queue = asyncio.Queue()
    for item in items:
        work.put_nowait(item)
    results: asyncio.Queue = asyncio.Queue()

    async def worker() -> None:
        while True:
            try:
                item = work.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                value = await operation(item)
            except Exception as e:
                results.put_nowait(ItemResult(item=item, error=e))
            except BaseException as e:
                # Every dequeued item gets a result, even when the worker goes down
                aborted = OperationAbortedError(repr(item), detail=repr(e))
                aborted.__cause__ = e
                results.put_nowait(ItemResult(item=item, error=aborted))
                raise
            else:
                results.put_nowait(ItemResult(item=item, value=value))

    workers = {asyncio.create_task(worker()) for _ in range(min(limit, len(items)))}
    collected: list[ItemResult[T, R]] = []
    getter: Optional[asyncio.Task] = None
    try:
        while len(collected) < len(items):
            getter = asyncio.ensure_future(results.get())
            done, _ = await asyncio.wait({getter, *workers}, return_when=asyncio.FIRST_COMPLETED)

            for task in done - {getter}:
                workers.discard(task)
                if task.cancelled() or task.exception() is not None:
                    logger.warning(f"Worker stopped abnormally, {work.qsize()} items still queued")
                    if not work.empty():
                        workers.add(asyncio.create_task(worker()))

            if getter in done:
                collected.append(getter.result())
            else:
                getter.cancel()
            getter = None
    finally:
        if getter is not None:
            getter.cancel()
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    failed = sum(1 for r in collected if not r.ok)
    logger.debug(f"Batch of {len(items)} finished (limit={limit}, failed={failed})")
    return collected
