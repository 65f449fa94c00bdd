"""
Error handling utilities for Lambda functions.

Provides standardized error payloads with error codes and their HTTP status.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Application error with error code and message.

    Raised by helpers and handlers; API routes turn it into a JSON error body.
    """

    def __init__(self, error_code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for a JSON response body."""
        return {
            "errorCode": self.error_code,
            "message": self.message,
            **self.details,
        }


# Common error codes
class ErrorCode:
    """Standard error codes for the application."""

    # Authorization errors
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Request errors
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INVALID_INPUT = "INVALID_INPUT"

    # Business logic errors
    INVITE_INVALID = "INVITE_INVALID"

    # System errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    EMAIL_ERROR = "EMAIL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_STATUS: Dict[str, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.INVITE_INVALID: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.METHOD_NOT_ALLOWED: 405,
    ErrorCode.UPSTREAM_ERROR: 502,
}


def http_status_for(error: Exception) -> int:
    """HTTP status for an exception; anything unmapped is a 500."""
    if isinstance(error, AppError):
        return HTTP_STATUS.get(error.error_code, 500)
    return 500


def handle_error(error: Exception) -> Dict[str, Any]:
    """
    Convert exception to standardized error payload.

    Args:
        error: Exception to handle

    Returns:
        Error dictionary with errorCode and message
    """
    if isinstance(error, AppError):
        return error.to_dict()

    # Unexpected error - generic message
    return {
        "errorCode": ErrorCode.INTERNAL_ERROR,
        "message": "An unexpected error occurred. Please try again.",
    }
