"""Tests for the periodic scheduler."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from aligner.cycle import CycleReport
from aligner.scheduler import Scheduler


def _cycle(side_effect=None) -> Mock:
    cycle = Mock()
    cycle.run = AsyncMock(side_effect=side_effect, return_value=CycleReport())
    return cycle


class TestScheduler:
    """Tests for Scheduler.run."""

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="positive"):
            Scheduler(cycle=_cycle(), interval=0)

    @pytest.mark.asyncio
    async def test_first_cycle_runs_immediately(self) -> None:
        stop = asyncio.Event()

        async def run_and_stop() -> CycleReport:
            stop.set()
            return CycleReport()

        scheduler = Scheduler(cycle=_cycle(run_and_stop), interval=3600)
        await asyncio.wait_for(scheduler.run(stop), timeout=1)

        assert scheduler.cycles_run == 1

    @pytest.mark.asyncio
    async def test_max_cycles(self) -> None:
        cycle = _cycle()
        scheduler = Scheduler(cycle=cycle, interval=0.01, max_cycles=3)

        await asyncio.wait_for(scheduler.run(), timeout=2)

        assert cycle.run.await_count == 3
        assert scheduler.last_report is not None

    @pytest.mark.asyncio
    async def test_stop_event_prevents_new_cycle(self) -> None:
        stop = asyncio.Event()
        cycle = _cycle()
        scheduler = Scheduler(cycle=cycle, interval=0.05)

        task = asyncio.create_task(scheduler.run(stop))
        await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(task, timeout=1)

        assert cycle.run.await_count == 1

    @pytest.mark.asyncio
    async def test_cancellation_stops_cleanly(self) -> None:
        cycle = _cycle()
        scheduler = Scheduler(cycle=cycle, interval=3600)

        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert cycle.run.await_count == 1

    @pytest.mark.asyncio
    async def test_failing_cycle_does_not_stop_loop(self) -> None:
        cycle = _cycle([RuntimeError("boom"), CycleReport()])
        scheduler = Scheduler(cycle=cycle, interval=0.01, max_cycles=2)

        await asyncio.wait_for(scheduler.run(), timeout=2)

        assert cycle.run.await_count == 2
        assert scheduler.last_report is not None

    @pytest.mark.asyncio
    async def test_slow_cycles_never_overlap(self) -> None:
        active = 0
        peak = 0

        async def slow_cycle() -> CycleReport:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.03)
            active -= 1
            return CycleReport()

        cycle = _cycle(slow_cycle)
        scheduler = Scheduler(cycle=cycle, interval=0.01, max_cycles=3)

        await asyncio.wait_for(scheduler.run(), timeout=2)

        assert peak == 1
        assert cycle.run.await_count == 3
