"""
Unit tests for the bounded concurrency orchestrator.
"""

import asyncio

import pytest

from shelftag.errors import OperationAbortedError
from shelftag.pipeline import BatchReport, run_bounded

pytestmark = pytest.mark.asyncio


class TestRunBounded:
    """Tests for run_bounded."""

    async def test_every_item_gets_a_result(self):
        async def double(x):
            return x * 2

        results = await run_bounded(range(50), double, limit=7)

        assert sorted(r.item for r in results) == list(range(50))
        assert all(r.value == r.item * 2 for r in results)

    async def test_in_flight_never_exceeds_limit(self):
        in_flight = 0
        peak = 0

        async def op(_):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1

        await run_bounded(range(40), op, limit=5)

        assert peak == 5

    async def test_failures_are_isolated(self):
        """Test 3 failing operations out of 10 do not abort the batch."""
        async def search(i):
            await asyncio.sleep(0)
            if i in (2, 5, 8):
                raise ValueError(f"search {i} failed")
            return f"match-{i}"

        report = BatchReport.from_results(await run_bounded(range(10), search, limit=25))

        assert report.success_count == 7
        assert report.failure_count == 3
        assert sorted(item for item, _ in report.failures) == [2, 5, 8]
        assert all(isinstance(e, ValueError) for _, e in report.failures)

    async def test_results_carry_their_item_regardless_of_order(self):
        async def op(i):
            # Later items finish first
            await asyncio.sleep(0.001 * (5 - i))
            return i * 10

        results = await run_bounded(range(5), op, limit=5)

        assert sorted(r.item for r in results) == [0, 1, 2, 3, 4]
        assert all(r.value == r.item * 10 for r in results)

    @pytest.mark.parametrize("limit", [1, 2])
    async def test_cancelled_operation_still_yields_a_result(self, limit):
        """Test an operation raising CancelledError neither hangs the batch nor drops items."""
        async def op(i):
            await asyncio.sleep(0)
            if i == 1:
                raise asyncio.CancelledError()
            return i

        results = await asyncio.wait_for(run_bounded(range(3), op, limit=limit), timeout=2)
        report = BatchReport.from_results(results)

        assert sorted(item for item, _ in report.successes) == [0, 2]
        assert [item for item, _ in report.failures] == [1]
        assert isinstance(report.failures[0][1], OperationAbortedError)

    async def test_empty_input(self):
        async def op(_):
            raise AssertionError("never called")

        assert await run_bounded([], op, limit=3) == []

    async def test_invalid_limit(self):
        async def op(x):
            return x

        with pytest.raises(ValueError):
            await run_bounded([1], op, limit=0)
