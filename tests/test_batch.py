"""Tests for the bounded-concurrency batch processor."""

import asyncio

import pytest

from meshnotify.exceptions import BatchSourceError
from meshnotify.services.batch import describe, run_bounded


class ConcurrencyProbe:
    """Worker that records how many units are in flight at once."""

    def __init__(self, delay: float = 0.001) -> None:
        self.delay = delay
        self.active = 0
        self.peak = 0
        self.seen: list[int] = []

    async def __call__(self, item: int) -> int:
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            self.seen.append(item)
            return item * 2
        finally:
            self.active -= 1


class TestBounds:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("k", [1, 3, 10])
    async def test_never_exceeds_k(self, k: int) -> None:
        probe = ConcurrencyProbe()

        summary = await run_bounded(range(50), probe, max_concurrency=k)

        assert probe.peak <= k
        assert summary.peak_in_flight == probe.peak
        assert len(summary.outcomes) == 50

    @pytest.mark.asyncio
    async def test_reaches_k_when_work_allows(self) -> None:
        probe = ConcurrencyProbe()

        summary = await run_bounded(range(20), probe, max_concurrency=4)

        assert summary.peak_in_flight == 4

    @pytest.mark.asyncio
    async def test_k_larger_than_source(self) -> None:
        probe = ConcurrencyProbe()

        summary = await run_bounded([1, 2], probe, max_concurrency=10)

        assert sorted(summary.results) == [2, 4]
        assert summary.peak_in_flight <= 2

    @pytest.mark.asyncio
    async def test_rejects_k_below_one(self) -> None:
        with pytest.raises(ValueError, match="at least 1"):
            await run_bounded([1], ConcurrencyProbe(), max_concurrency=0)


class TestOutcomes:
    @pytest.mark.asyncio
    async def test_every_unit_has_one_outcome(self) -> None:
        summary = await run_bounded(range(25), ConcurrencyProbe(), max_concurrency=3)

        assert sorted(outcome.item for outcome in summary.outcomes) == list(range(25))
        assert summary.succeeded == 25
        assert summary.failed == 0

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self) -> None:
        """A raising unit does not cancel or fail its siblings."""

        async def worker(item: int) -> int:
            await asyncio.sleep(0)
            if item % 3 == 0:
                raise RuntimeError(f"unit {item} failed")
            return item

        summary = await run_bounded(range(9), worker, max_concurrency=2)

        assert summary.failed == 3
        assert summary.succeeded == 6
        failed_items = sorted(o.item for o in summary.outcomes if not o.ok)
        assert failed_items == [0, 3, 6]
        assert all(isinstance(o.error, RuntimeError) for o in summary.outcomes if not o.ok)

    @pytest.mark.asyncio
    async def test_empty_source(self) -> None:
        summary = await run_bounded([], ConcurrencyProbe(), max_concurrency=3)

        assert summary.outcomes == []
        assert summary.peak_in_flight == 0

    @pytest.mark.asyncio
    async def test_describe(self) -> None:
        summary = await run_bounded([1, 2, 3], ConcurrencyProbe(), max_concurrency=1)

        assert describe(summary) == {
            "units": 3,
            "succeeded": 3,
            "failed": 0,
            "peak_in_flight": 1,
        }


class TestSources:
    @pytest.mark.asyncio
    async def test_async_source_is_consumed_lazily(self) -> None:
        """The producer never runs more than K items ahead of completed work."""
        produced = 0
        probe = ConcurrencyProbe()
        max_lead = 0

        async def source():
            nonlocal produced, max_lead
            for i in range(30):
                produced += 1
                max_lead = max(max_lead, produced - len(probe.seen))
                yield i

        summary = await run_bounded(source(), probe, max_concurrency=3)

        assert len(summary.outcomes) == 30
        assert max_lead <= 3

    @pytest.mark.asyncio
    async def test_source_failure_raises_after_in_flight_units(self) -> None:
        probe = ConcurrencyProbe(delay=0.01)

        async def source():
            for i in range(5):
                yield i
            raise ConnectionError("listing failed")

        with pytest.raises(BatchSourceError) as exc_info:
            await run_bounded(source(), probe, max_concurrency=2, name="listing")

        assert sorted(probe.seen) == [0, 1, 2, 3, 4]
        assert probe.active == 0
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert exc_info.value.context["batch"] == "listing"
        assert exc_info.value.context["completed_units"] == 5
