"""
Main Error Handler

Creates standardized HTTPExceptions, with logging, for the chat router API.
"""

from typing import Optional
from fastapi import HTTPException

from .error_types import ErrorType, ErrorContext
from .error_logger import ErrorLogger
from ..exceptions import (
    ChatServiceError,
    InvalidProviderError,
    ProviderFailureError,
    QuotaExceededError,
)


class ErrorHandler:
    """Centralized error handling utility."""

    @staticmethod
    def create_http_exception(
        error_type: ErrorType,
        context: Optional[ErrorContext] = None,
        original_exception: Optional[BaseException] = None,
        log_error: bool = True,
        **format_kwargs
    ) -> HTTPException:
        """
        Create a standardized HTTPException with proper logging.

        Args:
            error_type: The type of error to create
            context: Error context information
            original_exception: Original exception that caused this error
            log_error: Whether to log the error
            **format_kwargs: Additional kwargs for message formatting

        Returns:
            HTTPException with standardized format
        """
        if context is None:
            context = ErrorContext()

        format_dict = {**context.__dict__, **format_kwargs}
        error_detail = error_type.create_error_detail(**format_dict)

        if log_error:
            ErrorLogger.log_error(
                error_type=error_type,
                context=context,
                original_exception=original_exception,
                additional_data={"error_detail": error_detail},
                message=error_detail["error"]["message"]
            )

        return HTTPException(
            status_code=error_type.status_code,
            detail=error_detail
        )

    @staticmethod
    def handle_content_not_specified(context: ErrorContext) -> HTTPException:
        return ErrorHandler.create_http_exception(ErrorType.CONTENT_NOT_SPECIFIED, context)

    @staticmethod
    def handle_user_not_specified(context: ErrorContext) -> HTTPException:
        return ErrorHandler.create_http_exception(ErrorType.USER_NOT_SPECIFIED, context)

    @staticmethod
    def handle_invalid_request_format(context: ErrorContext, original_exception: Optional[Exception] = None) -> HTTPException:
        return ErrorHandler.create_http_exception(
            ErrorType.INVALID_REQUEST_FORMAT, context, original_exception=original_exception
        )

    @staticmethod
    def handle_quota_exceeded(error: QuotaExceededError, context: ErrorContext) -> HTTPException:
        """Handle a daily limit rejection; the body carries the user-facing text."""
        return ErrorHandler.create_http_exception(
            error_type=ErrorType.QUOTA_EXCEEDED,
            context=context,
            error_details=error.message
        )

    @staticmethod
    def handle_provider_failure(error: Exception, context: ErrorContext) -> HTTPException:
        """Handle a provider error; masked text for ProviderFailureError, raw text otherwise."""
        message = error.message if isinstance(error, ProviderFailureError) else str(error)
        original = error.original_exception if isinstance(error, ProviderFailureError) else error
        return ErrorHandler.create_http_exception(
            error_type=ErrorType.PROVIDER_FAILURE,
            context=context,
            original_exception=original,
            error_details=message
        )

    @staticmethod
    def handle_invalid_provider(error: InvalidProviderError, context: ErrorContext) -> HTTPException:
        context.chat_type = error.chat_type
        return ErrorHandler.create_http_exception(ErrorType.INVALID_PROVIDER, context)

    @staticmethod
    def handle_internal_server_error(
        error_details: str,
        context: ErrorContext,
        original_exception: Optional[BaseException] = None
    ) -> HTTPException:
        return ErrorHandler.create_http_exception(
            error_type=ErrorType.INTERNAL_SERVER_ERROR,
            context=context,
            original_exception=original_exception,
            error_details=error_details
        )

    @staticmethod
    def from_service_error(error: ChatServiceError, context: ErrorContext) -> HTTPException:
        """Map a chat service exception to its HTTP error."""
        if isinstance(error, QuotaExceededError):
            return ErrorHandler.handle_quota_exceeded(error, context)
        if isinstance(error, InvalidProviderError):
            return ErrorHandler.handle_invalid_provider(error, context)
        if isinstance(error, ProviderFailureError):
            return ErrorHandler.handle_provider_failure(error, context)
        return ErrorHandler.handle_internal_server_error(error.message, context, error)
