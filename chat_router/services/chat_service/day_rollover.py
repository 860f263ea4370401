"""
Day Rollover Module

Background task that asks the quota tracker to check for a new UTC day.

The first check lands on the next whole hour after the scheduler starts,
later checks follow every ``interval`` seconds on the same grid until
``stop()`` is called. A check that is already running when ``stop()``
arrives is allowed to finish.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from ...core.logging import logger
from .quota_tracker import utc_now


def next_hour_boundary(now: datetime) -> datetime:
    """Whole hour following ``now`` (10:13 -> 11:00, 10:00 -> 11:00)."""
    return (now + timedelta(hours=1)).replace(minute=0, second=0, microsecond=0)


def seconds_until_next_hour(now: datetime) -> float:
    now = now.astimezone(timezone.utc)
    return (next_hour_boundary(now) - now).total_seconds()


class SchedulerState(Enum):
    CREATED = "created"
    ARMED = "armed"
    RUNNING = "running"
    STOPPED = "stopped"


class DayRolloverScheduler:
    """
    Hour-aligned timer driving the daily quota reset.

    Attributes:
        state (SchedulerState): CREATED until ``start()``, ARMED while
            waiting for the first hour boundary, RUNNING once the hourly
            ticks begin, STOPPED after ``stop()`` or task exit.
        fires (int): Number of reset checks performed so far.
    """

    def __init__(self, on_tick: Callable[[], Awaitable[object]],
                 clock: Callable[[], datetime] = utc_now, interval: float = 3600.0):
        self._on_tick = on_tick
        self._clock = clock
        self.interval = interval
        self.state = SchedulerState.CREATED
        self.fires = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Arm the timer. Must be called from a running event loop."""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        initial_delay = seconds_until_next_hour(self._clock())
        self.state = SchedulerState.ARMED
        self._task = asyncio.create_task(self._run(initial_delay), name="day-rollover")
        logger.info(
            f"Day rollover scheduler armed | first_check_in={initial_delay:.0f}s",
            initial_delay_seconds=initial_delay,
            interval_seconds=self.interval
        )

    async def stop(self) -> None:
        """Signal the task to stop and wait for it. Safe to call twice."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        self.state = SchedulerState.STOPPED

    async def _wait_for_stop(self, timeout: float) -> bool:
        """True if stop was requested before ``timeout`` elapsed."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=max(timeout, 0))
            return True
        except asyncio.TimeoutError:
            return False

    async def _tick(self) -> None:
        self.fires += 1
        try:
            await self._on_tick()
        except Exception as e:
            logger.error(f"Day rollover check failed: {e}", component="day_rollover")

    async def _run(self, initial_delay: float) -> None:
        loop = asyncio.get_running_loop()
        try:
            deadline = loop.time() + initial_delay
            if await self._wait_for_stop(initial_delay):
                return
            await self._tick()

            self.state = SchedulerState.RUNNING
            while True:
                deadline += self.interval
                if await self._wait_for_stop(deadline - loop.time()):
                    return
                await self._tick()
        finally:
            self.state = SchedulerState.STOPPED
            logger.info("Day rollover scheduler stopped", fires=self.fires)
