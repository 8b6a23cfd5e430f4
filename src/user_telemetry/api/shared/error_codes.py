"""
Standard Error Codes

Consistent error codes across all API endpoints with HTTP status mapping.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """API error codes."""

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


# HTTP status code mapping
ERROR_STATUS_CODES = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
}


def get_status_code(error_code: ErrorCode) -> int:
    """
    Get HTTP status code for an error code.

    Args:
        error_code: The error code

    Returns:
        HTTP status code (defaults to 500 if not mapped)
    """
    return ERROR_STATUS_CODES.get(error_code, 500)


def is_server_error(error_code: ErrorCode) -> bool:
    """Check if the error code represents a server error (5xx)."""
    return get_status_code(error_code) >= 500
