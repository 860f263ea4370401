"""
Small Logger wrapper used across the chat router.

Keyword arguments passed to the log methods end up in the record's ``extra``
so handlers and tests can inspect them.
"""

import logging
import time
import json
from typing import Any, Optional
from contextlib import contextmanager
from .config import setup_logging


class Logger:
    """
    Thin wrapper around the ``chat-router`` stdlib logger.
    """

    def __init__(self):
        self._logger = setup_logging()

    def is_debug_enabled(self) -> bool:
        """Check if debug logging is enabled."""
        return self._logger.isEnabledFor(logging.DEBUG)

    def info(self, message: str, **kwargs):
        """Log an info message."""
        if kwargs:
            self._logger.info(message, extra=kwargs)
        else:
            self._logger.info(message)

    def debug(self, message: str, **kwargs):
        """Log a debug message."""
        if kwargs:
            self._logger.debug(message, extra=kwargs)
        else:
            self._logger.debug(message)

    def warning(self, message: str, **kwargs):
        """Log a warning message."""
        if kwargs:
            self._logger.warning(message, extra=kwargs)
        else:
            self._logger.warning(message)

    def error(self, message: str, exc_info: bool = True, **kwargs):
        """Log an error message."""
        if kwargs:
            self._logger.error(message, extra=kwargs, exc_info=exc_info)
        else:
            self._logger.error(message, exc_info=exc_info)

    def request(self, operation: str, request_id: str, **kwargs):
        """Log a request with context."""
        message_parts = [f"Request: {operation}"]
        if 'chat_type' in kwargs:
            message_parts.append(f"chat={kwargs['chat_type']}")
        if 'user_id' in kwargs:
            message_parts.append(f"user={kwargs['user_id']}")

        message = " | ".join(message_parts)
        self.info(message, request_id=request_id, **kwargs)

    def response(self, operation: str, request_id: str, status_code: int = 200, **kwargs):
        """Log a response with context."""
        message_parts = [f"Response: {operation}", f"status={status_code}"]
        if 'processing_time_ms' in kwargs:
            message_parts.append(f"time={kwargs['processing_time_ms']}ms")

        message = " | ".join(message_parts)
        self.info(message, request_id=request_id, status_code=status_code, **kwargs)

    def debug_data(self, title: str, data: Any, **kwargs):
        """Dump a payload at DEBUG level; a no-op at any other level."""
        if not self.is_debug_enabled():
            return

        if isinstance(data, (dict, list)):
            body = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        else:
            body = str(data)
        self.debug(f"{title}\n{body}", **kwargs)

    @contextmanager
    def request_context(self, operation: str, request_id: Optional[str], **kwargs):
        """
        Scope one request: log its start, then a single finish line with the
        outcome and duration.

        Exceptions are re-raised untouched; callers that map them to HTTP
        errors already log the details.
        """
        started = time.monotonic()
        outcome = "ok"
        self.request(operation=operation, request_id=request_id, **kwargs)
        try:
            yield
        except Exception as e:
            outcome = f"failed ({type(e).__name__})"
            raise
        finally:
            duration_ms = int((time.monotonic() - started) * 1000)
            self.info(
                f"Finished: {operation} | outcome={outcome} | duration={duration_ms}ms",
                request_id=request_id,
                duration_ms=duration_ms,
                **kwargs
            )
