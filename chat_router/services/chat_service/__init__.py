"""
Chat Service Package

Components for routing chat completions under a per-user daily quota.

Modules:
- quota_tracker: per-user counters for the current UTC day
- day_rollover: hour-aligned background check that resets the counters
- chat_service: provider selection, quota enforcement and dispatch

Usage:
    from chat_router.services.chat_service import ChatService

    async with ChatService(config, {"chatgpt": gpt_client}) as service:
        answer = await service.chat_completion("", "user-1", "Hello")
"""

from .quota_tracker import QuotaTracker
from .day_rollover import DayRolloverScheduler, SchedulerState
from .chat_service import ChatService, RESPONSE_EMPTY, RESPONSE_ERROR

__all__ = [
    "QuotaTracker",
    "DayRolloverScheduler",
    "SchedulerState",
    "ChatService",
    "RESPONSE_EMPTY",
    "RESPONSE_ERROR"
]
