"""Bounded-concurrency batch processor.

Drains a work source with at most K units in flight. Each unit's outcome is
returned by the unit itself and aggregated once every unit has settled, so
no unit ever mutates shared state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from meshnotify.exceptions import BatchSourceError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class UnitOutcome(Generic[T, R]):
    """Terminal outcome of a single unit."""

    item: T
    result: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchSummary(Generic[T, R]):
    """Aggregated outcomes of a completed batch."""

    outcomes: list[UnitOutcome[T, R]] = field(default_factory=list)
    peak_in_flight: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    @property
    def results(self) -> list[R | None]:
        return [outcome.result for outcome in self.outcomes]


async def _as_async_iterator(source: Iterable[T] | AsyncIterable[T]) -> AsyncIterator[T]:
    if isinstance(source, AsyncIterable):
        async for item in source:
            yield item
    else:
        for item in source:
            yield item


class _SharedCursor(Generic[T]):
    """One iterator shared by all workers; advanced under a lock."""

    def __init__(self, source: Iterable[T] | AsyncIterable[T]) -> None:
        self._iterator = _as_async_iterator(source)
        self._lock = asyncio.Lock()
        self._exhausted = False
        self.error: BaseException | None = None

    async def next(self) -> tuple[bool, T | None]:
        async with self._lock:
            if self._exhausted:
                return False, None
            try:
                return True, await self._iterator.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                return False, None
            except Exception as e:
                self._exhausted = True
                self.error = e
                return False, None


async def run_bounded(
    source: Iterable[T] | AsyncIterable[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    max_concurrency: int,
    name: str = "batch",
) -> BatchSummary[T, R]:
    """
    Process every unit of a work source with bounded concurrency.

    K worker coroutines pull from one shared cursor, so at most K units are
    in flight at any instant and the source is consumed lazily. A unit that
    raises is recorded as a failed outcome and does not affect its siblings.

    Args:
        source: Iterable or async iterable of work items
        worker: Coroutine function processing one item
        max_concurrency: Maximum number of units in flight (K)
        name: Batch name for logging

    Returns:
        BatchSummary with one outcome per unit (no ordering guarantee)

    Raises:
        ValueError: If max_concurrency is less than 1
        BatchSourceError: If the source fails; raised after in-flight units finish
    """
    if max_concurrency < 1:
        msg = f"max_concurrency must be at least 1, got {max_concurrency}"
        raise ValueError(msg)

    cursor: _SharedCursor[T] = _SharedCursor(source)
    in_flight = 0
    peak_in_flight = 0

    async def drain() -> list[UnitOutcome[T, R]]:
        nonlocal in_flight, peak_in_flight
        outcomes: list[UnitOutcome[T, R]] = []
        while True:
            has_item, item = await cursor.next()
            if not has_item:
                return outcomes

            in_flight += 1
            peak_in_flight = max(peak_in_flight, in_flight)
            try:
                result = await worker(item)  # type: ignore[arg-type]
            except Exception as e:
                logger.warning(
                    "Batch unit failed",
                    extra={
                        "batch": name,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                outcomes.append(UnitOutcome(item=item, error=e))  # type: ignore[arg-type]
            else:
                outcomes.append(UnitOutcome(item=item, result=result))  # type: ignore[arg-type]
            finally:
                in_flight -= 1

    per_worker = await asyncio.gather(*(drain() for _ in range(max_concurrency)))

    summary: BatchSummary[T, R] = BatchSummary(peak_in_flight=peak_in_flight)
    for outcomes in per_worker:
        summary.outcomes.extend(outcomes)

    if cursor.error is not None:
        logger.error(
            "Batch source failed",
            extra={
                "batch": name,
                "completed_units": len(summary.outcomes),
                "error": str(cursor.error),
                "error_type": type(cursor.error).__name__,
            },
        )
        raise BatchSourceError(
            f"Work source for {name} failed: {cursor.error}",
            context={"batch": name, "completed_units": len(summary.outcomes)},
        ) from cursor.error

    logger.debug(
        "Batch completed",
        extra={
            "batch": name,
            "succeeded": summary.succeeded,
            "failed": summary.failed,
            "peak_in_flight": peak_in_flight,
        },
    )
    return summary


def describe(summary: BatchSummary[Any, Any]) -> dict[str, int]:
    """Compact counters for log records."""
    return {
        "units": len(summary.outcomes),
        "succeeded": summary.succeeded,
        "failed": summary.failed,
        "peak_in_flight": summary.peak_in_flight,
    }
