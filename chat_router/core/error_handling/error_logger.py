"""
Error Logging Utility

Centralized error logging for the HTTP surface.
"""

from typing import Dict, Any, Optional

from .error_types import ErrorType, ErrorContext
from ..logging import logger


class ErrorLogger:
    """Logs errors through the shared project logger."""

    @staticmethod
    def log_error(
        error_type: ErrorType,
        context: ErrorContext,
        original_exception: Optional[BaseException] = None,
        additional_data: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None
    ):
        log_extra = context.to_log_extra()
        log_extra["error_code"] = error_type.code
        log_extra["http_status_code"] = error_type.status_code

        if additional_data:
            log_extra.update(additional_data)

        log_message = message or error_type.format_message(**context.__dict__)

        if original_exception:
            log_extra["original_exception"] = str(original_exception)
            log_extra["original_exception_type"] = type(original_exception).__name__

        # Quota rejections are policy, not failures.
        if error_type == ErrorType.QUOTA_EXCEEDED:
            logger.warning(log_message, **log_extra)
        else:
            logger.error(log_message, exc_info=original_exception is not None, **log_extra)
