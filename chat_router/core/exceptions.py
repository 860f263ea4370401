from typing import Optional

from .logging import logger


class ChatServiceError(Exception):
    """Base class for errors raised by the chat service.

    ``message`` is the text meant for the end user, ``original_exception``
    the underlying cause when there is one.
    """
    error_code = "chat_service_error"

    def __init__(self, message: str, original_exception: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class QuotaExceededError(ChatServiceError):
    """The user reached the daily limit for the current UTC day."""
    error_code = "quota_exceeded"

    def __init__(self, message: str, user_id: str, limit: int):
        super().__init__(message)
        self.user_id = user_id
        self.limit = limit


class ProviderFailureError(ChatServiceError):
    """The selected provider failed; the original error is kept for diagnostics."""
    error_code = "provider_failure"

    def __init__(self, message: str, chat_type: str, original_exception: BaseException):
        super().__init__(message, original_exception)
        self.chat_type = chat_type

        logger.error(f"Provider failure: {original_exception}", exc_info=False, exception={
            "type": "ProviderFailureError",
            "chat_type": chat_type,
            "original_exception_type": type(original_exception).__name__
        })


class InvalidProviderError(ChatServiceError):
    """No provider is registered for the requested chat type."""
    error_code = "invalid_provider"

    def __init__(self, chat_type: str):
        super().__init__(f"Unknown chat type: '{chat_type}'")
        self.chat_type = chat_type


class ProviderConfigError(ChatServiceError):
    """A provider block in the configuration could not be turned into a client."""
    error_code = "provider_config_error"

    def __init__(self, chat_type: str, error_details: str, original_exception: Optional[BaseException] = None):
        super().__init__(f"Provider '{chat_type}' configuration error: {error_details}", original_exception)
        self.chat_type = chat_type

        logger.error(self.message, exc_info=original_exception is not None, exception={
            "type": "ProviderConfigError",
            "chat_type": chat_type,
            "has_original_exception": original_exception is not None
        })


class ConfigError(ChatServiceError):
    """The chat configuration is invalid."""
    error_code = "config_error"
