from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

import httpx

# Lazy sequence of content chunks produced by a streaming completion.
ChatCompletionStream = AsyncIterator[str]


class ChatType(str, Enum):
    """Backends a request can be routed to."""

    CHATGPT = "chatgpt"
    WENXIN = "wenxin"


class BaseProvider(ABC):
    """
    Capability every chat backend exposes to the chat service.

    Concrete providers own their wire protocol; the service only sends
    completions and asks them to drop per-user context on day rollover.
    """

    def __init__(self, config: Dict[str, Any], max_tokens: int, enable_context: bool,
                 client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.max_tokens = max_tokens
        self.enable_context = enable_context
        self.client = client

    @abstractmethod
    async def send_chat_completion(self, user_id: str, content: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def send_chat_completion_stream(self, user_id: str, content: str) -> ChatCompletionStream:
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        """Drop any per-user conversation history held by the provider."""
        raise NotImplementedError
