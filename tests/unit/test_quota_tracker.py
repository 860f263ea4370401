"""
Tests for the per-user daily quota counters.
"""
import asyncio
from unittest.mock import Mock

import pytest

from chat_router.services.chat_service import QuotaTracker


class TestQuotaTracker:
    """Counting, reading and day rollover of QuotaTracker"""

    @pytest.mark.asyncio
    async def test_unknown_user_starts_at_zero(self, clock):
        tracker = QuotaTracker(clock=clock, reset_pause=0)
        assert await tracker.get("nobody") == 0

    @pytest.mark.asyncio
    async def test_increment_counts_per_user(self, clock):
        tracker = QuotaTracker(clock=clock, reset_pause=0)
        for _ in range(3):
            await tracker.increment("u1")
        await tracker.increment("u2")

        assert await tracker.get("u1") == 3
        assert await tracker.get("u2") == 1

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self, clock):
        tracker = QuotaTracker(clock=clock, reset_pause=0)
        await asyncio.gather(*(tracker.increment("u1") for _ in range(50)))
        assert await tracker.get("u1") == 50

    @pytest.mark.asyncio
    async def test_initial_day_is_current_utc_day(self, clock):
        tracker = QuotaTracker(clock=clock, reset_pause=0)
        assert tracker.day == 15

    @pytest.mark.asyncio
    async def test_same_day_reset_is_noop(self, clock):
        on_new_day = Mock()
        tracker = QuotaTracker(clock=clock, reset_pause=0, on_new_day=on_new_day)
        await tracker.increment("u1")
        clock.advance(hours=5)

        assert await tracker.reset_if_new_day() is False
        assert await tracker.get("u1") == 1
        on_new_day.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_day_clears_counts_and_notifies(self, clock):
        on_new_day = Mock()
        tracker = QuotaTracker(clock=clock, reset_pause=0, on_new_day=on_new_day)
        await tracker.increment("u1")
        await tracker.increment("u2")
        clock.advance(days=1)

        assert await tracker.reset_if_new_day() is True
        assert await tracker.get("u1") == 0
        assert await tracker.get("u2") == 0
        assert tracker.day == 16
        on_new_day.assert_called_once()

    @pytest.mark.asyncio
    async def test_reset_is_idempotent_within_day(self, clock):
        on_new_day = Mock()
        tracker = QuotaTracker(clock=clock, reset_pause=0, on_new_day=on_new_day)
        clock.advance(days=1)

        assert await tracker.reset_if_new_day() is True
        await tracker.increment("u1")
        assert await tracker.reset_if_new_day() is False
        assert await tracker.get("u1") == 1
        on_new_day.assert_called_once()

    @pytest.mark.asyncio
    async def test_reset_pause_blocks_reads(self, clock):
        """Reads issued during the reset pause wait for the reset to finish."""
        tracker = QuotaTracker(clock=clock, reset_pause=0.1)
        await tracker.increment("u1")
        clock.advance(days=1)
        loop = asyncio.get_running_loop()

        reset_task = asyncio.create_task(tracker.reset_if_new_day())
        await asyncio.sleep(0.01)
        started = loop.time()
        count = await tracker.get("u1")

        assert count == 0
        assert loop.time() - started >= 0.05
        assert await reset_task is True

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self, clock):
        tracker = QuotaTracker(clock=clock, reset_pause=0)
        await tracker.increment("u1")

        snapshot = await tracker.snapshot()
        snapshot["counts"]["u1"] = 99

        assert snapshot["day"] == 15
        assert await tracker.get("u1") == 1
