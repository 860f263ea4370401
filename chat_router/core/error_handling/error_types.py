"""
Error Types and Context Definitions

Standardized error types and context information for the HTTP surface
of the chat router.
"""

from enum import Enum
from typing import Dict, Any, Optional
from fastapi import status


class ErrorType(Enum):
    """Enumeration of standard error types in the system."""

    # Validation Errors (400)
    CONTENT_NOT_SPECIFIED = ("content_not_specified", status.HTTP_400_BAD_REQUEST, "Message content not specified in request")
    USER_NOT_SPECIFIED = ("user_not_specified", status.HTTP_400_BAD_REQUEST, "User identifier not specified in request")
    INVALID_REQUEST_FORMAT = ("invalid_request_format", status.HTTP_400_BAD_REQUEST, "Invalid request format")
    INVALID_PROVIDER = ("invalid_provider", status.HTTP_400_BAD_REQUEST, "Chat type '{chat_type}' is not available")

    # Quota (429)
    QUOTA_EXCEEDED = ("quota_exceeded", status.HTTP_429_TOO_MANY_REQUESTS, "{error_details}")

    # Provider Errors (502)
    PROVIDER_FAILURE = ("provider_failure", status.HTTP_502_BAD_GATEWAY, "{error_details}")

    # Server Errors (500)
    INTERNAL_SERVER_ERROR = ("internal_server_error", status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error: {error_details}")

    def __init__(self, code: str, status_code: int, message_template: str):
        self.code = code
        self.status_code = status_code
        self.message_template = message_template

    def format_message(self, **kwargs) -> str:
        """Format the error message with provided parameters."""
        try:
            return self.message_template.format(**kwargs)
        except KeyError:
            return self.message_template

    def create_error_detail(self, **kwargs) -> Dict[str, Any]:
        """Create standardized error detail dictionary."""
        return {
            "error": {
                "message": self.format_message(**kwargs),
                "code": self.code
            }
        }


class ErrorContext:
    """Context information for error handling."""

    def __init__(
        self,
        request_id: Optional[str] = None,
        user_id: Optional[str] = None,
        chat_type: Optional[str] = None,
        **additional_context
    ):
        self.request_id = request_id
        self.user_id = user_id
        self.chat_type = chat_type
        self.additional_context = additional_context

    def to_log_extra(self) -> Dict[str, Any]:
        """Convert context to logging extra dictionary."""
        extra = {
            "log_type": "error"
        }

        if self.request_id:
            extra["request_id"] = self.request_id
        if self.user_id:
            extra["user_id"] = self.user_id
        if self.chat_type:
            extra["chat_type"] = self.chat_type

        extra.update(self.additional_context)
        return extra
