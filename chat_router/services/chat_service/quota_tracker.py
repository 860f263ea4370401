"""
Quota Tracker Module

In-memory per-user request counters for the current UTC day.

Counts are never persisted: a restart starts every user from zero. All
counts in the mapping belong to the same UTC day-of-month; when the day
changes the whole mapping is replaced under the write lock.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from ...core.logging import logger
from ...utils.rwlock import AsyncRWLock


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuotaTracker:
    """
    Per-user daily usage counters guarded by a reader/writer lock.

    ``get`` calls may run side by side; ``increment`` and
    ``reset_if_new_day`` are exclusive with every other operation.

    Attributes:
        reset_pause (float): Seconds the reset waits, holding the write
            lock, before comparing days. Overlapping scheduler fires near
            the boundary collapse into a single reset.
        on_new_day (Callable): Invoked once per actual reset, still under
            the write lock. The chat service uses it to reset providers.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now, reset_pause: float = 1.0,
                 on_new_day: Optional[Callable[[], None]] = None):
        self._clock = clock
        self.reset_pause = reset_pause
        self.on_new_day = on_new_day
        self._lock = AsyncRWLock()
        self._day = self._today()
        self._counts: Dict[str, int] = {}

    def _today(self) -> int:
        return self._clock().astimezone(timezone.utc).day

    @property
    def day(self) -> int:
        return self._day

    async def increment(self, user_id: str) -> None:
        async with self._lock.write():
            self._counts[user_id] = self._counts.get(user_id, 0) + 1

    async def get(self, user_id: str) -> int:
        async with self._lock.read():
            return self._counts.get(user_id, 0)

    async def snapshot(self) -> Dict[str, object]:
        """Copy of the current day and counts, for diagnostics."""
        async with self._lock.read():
            return {"day": self._day, "counts": dict(self._counts)}

    async def reset_if_new_day(self) -> bool:
        """
        Clear all counters if the UTC day changed since the last reset.

        Returns:
            bool: True when counters were cleared, False when the day is
                unchanged (no-op).
        """
        async with self._lock.write():
            if self.reset_pause > 0:
                await asyncio.sleep(self.reset_pause)
            today = self._today()
            if self._day == today:
                return False

            previous_day, users = self._day, len(self._counts)
            self._day = today
            self._counts = {}
            if self.on_new_day is not None:
                self.on_new_day()

        logger.info(
            f"Daily quota reset | day={previous_day}->{today} | users={users}",
            previous_day=previous_day,
            current_day=today,
            users_cleared=users
        )
        return True
