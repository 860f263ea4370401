"""
Pytest configuration and fixtures for the chat router test suite.
"""

import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import List, Optional

# Keep test runs from writing into the working tree.
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "chat-router-test-logs"))

import pytest

from chat_router.core.config_manager import ChatConfig
from chat_router.providers.base import BaseProvider, ChatType
from chat_router.services.chat_service import ChatService


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeProvider(BaseProvider):
    """In-memory provider recording every call it receives."""

    def __init__(self, response: str = "Hello from provider", error: Optional[Exception] = None,
                 chunks: Optional[List[str]] = None, stream_error: Optional[Exception] = None,
                 gate: Optional[asyncio.Event] = None):
        super().__init__({}, max_tokens=3500, enable_context=False)
        self.response = response
        self.error = error
        self.chunks = chunks if chunks is not None else ["Hel", "lo"]
        self.stream_error = stream_error
        self.gate = gate
        self.started = asyncio.Event()
        self.calls = []
        self.stream_calls = []
        self.reset_calls = 0

    async def send_chat_completion(self, user_id: str, content: str) -> str:
        self.calls.append((user_id, content))
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.response

    async def send_chat_completion_stream(self, user_id: str, content: str):
        self.stream_calls.append((user_id, content))
        if self.error is not None:
            raise self.error
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error

    def reset(self) -> None:
        self.reset_calls += 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 15, 10, 13, 0, tzinfo=timezone.utc))


@pytest.fixture
def chatgpt() -> FakeProvider:
    return FakeProvider(response="answer from chatgpt")


@pytest.fixture
def wenxin() -> FakeProvider:
    return FakeProvider(response="answer from wenxin")


@pytest.fixture
def chat_config() -> ChatConfig:
    return ChatConfig.from_dict({"default_chat_mode": "chatgpt", "everyday_limit": 3})


@pytest.fixture
def chat_service(chat_config, chatgpt, wenxin, clock) -> ChatService:
    return ChatService(
        chat_config,
        {ChatType.CHATGPT: chatgpt, ChatType.WENXIN: wenxin},
        clock=clock,
        reset_pause=0
    )


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def fake_clock_cls():
    return FakeClock
