"""
Chat Service Module

This module provides the ChatService class that routes chat completion
requests to a provider and enforces the per-user daily quota.

For every request the service:
- resolves the chat type, falling back to the configured default
- rejects the request when the user reached the daily limit
- logs the inbound request
- forwards it to the selected provider
- charges one unit of quota for chargeable answers

The service owns its QuotaTracker and DayRolloverScheduler. Call
``start()`` once an event loop is running and ``close()`` on shutdown, or
use the service as an async context manager.
"""

import httpx
from datetime import datetime
from typing import Callable, Dict, Mapping, Optional, Union

from ...core.config_manager import ChatConfig
from ...core.exceptions import InvalidProviderError, ProviderFailureError, QuotaExceededError
from ...core.logging import logger
from ...providers import get_provider_instance
from ...providers.base import BaseProvider, ChatCompletionStream, ChatType
from .day_rollover import DayRolloverScheduler
from .quota_tracker import QuotaTracker, utc_now

RESPONSE_EMPTY = "Get response empty."
RESPONSE_ERROR = "Get response failed."


class ChatService:
    """
    Routes chat completions across providers under a daily per-user quota.

    Two concurrent requests for the same user may both pass the limit check
    before either is charged, so a user can exceed ``everyday_limit`` by up
    to the number of requests in flight. Failed and empty completions are
    never charged; streaming completions are charged as soon as the
    provider hands back a stream.

    Attributes:
        config (ChatConfig): Immutable service configuration
        providers (Dict[ChatType, BaseProvider]): Registered provider clients
        quota (QuotaTracker): Per-user counters for the current UTC day
        scheduler (DayRolloverScheduler): Hourly day-change check
    """

    def __init__(self, config: ChatConfig, providers: Mapping[Union[ChatType, str], BaseProvider],
                 clock: Callable[[], datetime] = utc_now, reset_pause: float = 1.0,
                 check_interval: float = 3600.0):
        """
        Initialize ChatService.

        Args:
            config: Validated chat configuration
            providers: Provider clients keyed by chat type
            clock: Source of the current UTC time
            reset_pause: Seconds the day reset waits under the write lock
            check_interval: Seconds between day-change checks after the
                first hour boundary
        """
        self.config = config
        self.providers: Dict[ChatType, BaseProvider] = {
            ChatType(chat_type): provider for chat_type, provider in providers.items()
        }
        self.limit_content = config.limit_message
        self.quota = QuotaTracker(clock=clock, reset_pause=reset_pause, on_new_day=self._reset_providers)
        self.scheduler = DayRolloverScheduler(self.quota.reset_if_new_day, clock=clock,
                                              interval=check_interval)

    @classmethod
    def from_config(cls, config: ChatConfig, client: Optional[httpx.AsyncClient] = None, **kwargs) -> "ChatService":
        """Build the service and one provider per configured ``providers`` block."""
        providers = {
            chat_type: get_provider_instance(chat_type, provider_config, config.max_tokens,
                                             config.enable_context, client)
            for chat_type, provider_config in config.providers.items()
        }
        return cls(config, providers, **kwargs)

    async def __aenter__(self) -> "ChatService":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def start(self) -> None:
        """Start the background day rollover check."""
        self.scheduler.start()

    async def close(self) -> None:
        """Stop the background check. In-flight requests are left alone."""
        await self.scheduler.stop()

    def _reset_providers(self) -> None:
        for chat_type, provider in self.providers.items():
            try:
                provider.reset()
            except Exception as e:
                logger.error(f"Provider '{chat_type.value}' context reset failed: {e}",
                             chat_type=chat_type.value)
                continue
            logger.debug(f"Provider '{chat_type.value}' context reset", chat_type=chat_type.value)

    def _resolve_chat_type(self, chat_type: Optional[Union[ChatType, str]]) -> str:
        if not chat_type:
            return self.config.default_chat_mode.value
        return chat_type.value if isinstance(chat_type, ChatType) else str(chat_type)

    def _select_provider(self, chat_type: str) -> BaseProvider:
        try:
            return self.providers[ChatType(chat_type)]
        except (ValueError, KeyError):
            raise InvalidProviderError(chat_type) from None

    async def chat_completion(self, chat_type: Optional[Union[ChatType, str]], user_id: str, content: str) -> str:
        """
        Send a non-streaming chat completion.

        Returns:
            str: The provider's answer, or ``RESPONSE_EMPTY`` when the
                provider answered with an empty string. Empty answers are
                not charged.

        Raises:
            QuotaExceededError: The user reached the daily limit; ``message``
                holds the user-facing limit text.
            InvalidProviderError: No provider is registered for the chat type.
            ProviderFailureError: The provider raised; ``message`` is
                ``RESPONSE_ERROR`` and ``original_exception`` the cause.
        """
        chat_type = self._resolve_chat_type(chat_type)
        if await self.quota.get(user_id) >= self.config.everyday_limit:
            raise QuotaExceededError(self.limit_content, user_id, self.config.everyday_limit)

        logger.info(f"receive content:{content}", chat_type=chat_type, user_id=user_id)
        provider = self._select_provider(chat_type)

        try:
            resp = await provider.send_chat_completion(user_id, content)
        except Exception as e:
            raise ProviderFailureError(RESPONSE_ERROR, chat_type, e) from e

        logger.debug_data("Provider response", {"chat_type": chat_type, "user_id": user_id, "content": resp},
                          chat_type=chat_type, user_id=user_id)

        if not resp:
            return RESPONSE_EMPTY
        await self.quota.increment(user_id)
        return resp

    async def chat_completion_stream(self, chat_type: Optional[Union[ChatType, str]], user_id: str,
                                     content: str) -> ChatCompletionStream:
        """
        Open a streaming chat completion.

        One unit of quota is charged as soon as the provider returns the
        stream, whatever the stream later yields.

        Raises:
            QuotaExceededError: The user reached the daily limit; the limit
                text is the exception's string form.
            InvalidProviderError: No provider is registered for the chat type.
            Exception: Whatever the provider raised, unchanged.
        """
        chat_type = self._resolve_chat_type(chat_type)
        if await self.quota.get(user_id) >= self.config.everyday_limit:
            raise QuotaExceededError(
                f"you've reached the daily limit ({self.config.everyday_limit}/day). "
                f"Your quota will be restored tomorrow",
                user_id,
                self.config.everyday_limit
            )

        logger.info(f"receive content:{content}", chat_type=chat_type, user_id=user_id, stream=True)
        provider = self._select_provider(chat_type)

        stream = await provider.send_chat_completion_stream(user_id, content)
        await self.quota.increment(user_id)
        return stream

    async def get_usage(self, user_id: str) -> int:
        """Completions charged to ``user_id`` today."""
        return await self.quota.get(user_id)
