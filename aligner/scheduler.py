from __future__ import annotations

import asyncio
import logging
from typing import Optional

from aligner.cycle import AlignmentCycle, CycleReport


logger = logging.getLogger(__name__)


class Scheduler:
    """Runs one cycle immediately, then one per interval until stopped.

    Cycles run sequentially on a single task. Ticks missed while a cycle
    overran the interval are collapsed into one; the next deadline is the
    first interval boundary after the cycle finished.
    """

    def __init__(
        self,
        *,
        cycle: AlignmentCycle,
        interval: float,
        max_cycles: Optional[int] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("Interval must be positive")
        self.cycle = cycle
        self.interval = interval
        self.max_cycles = max_cycles
        self.cycles_run = 0
        self.last_report: Optional[CycleReport] = None

    async def _run_cycle(self) -> None:
        self.cycles_run += 1
        logger.info(f"=== Alignment cycle {self.cycles_run} ===")
        try:
            self.last_report = await self.cycle.run()
        except Exception as e:
            logger.exception(f"Alignment cycle {self.cycles_run} failed: {e}")

    async def _wait(self, delay: float, stop_event: asyncio.Event) -> bool:
        """Sleep for ``delay`` seconds. Returns True if stop was requested."""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return stop_event.is_set()
        return True

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()
        logger.info(f"Starting scheduler (interval={self.interval}s)")

        try:
            next_deadline = loop.time()
            while not stop_event.is_set():
                await self._run_cycle()

                if self.max_cycles is not None and self.cycles_run >= self.max_cycles:
                    logger.info(f"Reached max cycles ({self.max_cycles})")
                    break

                now = loop.time()
                next_deadline += self.interval
                if next_deadline <= now:
                    missed = int((now - next_deadline) // self.interval) + 1
                    logger.warning(f"Cycle overran the interval; dropping {missed} missed tick(s)")
                    next_deadline += missed * self.interval

                if await self._wait(next_deadline - now, stop_event):
                    break
        except asyncio.CancelledError:
            logger.info("Scheduler cancelled")
            raise
        finally:
            logger.info("Scheduler stopped")
