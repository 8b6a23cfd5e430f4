"""
API Exception Classes

Custom exceptions that map to standard error responses.
"""

from typing import Optional, List

from .error_codes import ErrorCode, get_status_code
from .responses import ErrorDetail


class APIException(Exception):
    """
    Base exception for API errors.

    All custom API exceptions should inherit from this class.
    The error handler middleware will catch these and return
    standardized error responses.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[List[ErrorDetail]] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = get_status_code(code)
        super().__init__(message)


class NotFoundError(APIException):
    """
    Resource not found error.

    HTTP Status: 404
    """

    def __init__(
        self,
        resource: str,
        resource_id: Optional[str] = None
    ):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' not found"

        code_map = {
            "User": ErrorCode.USER_NOT_FOUND,
        }
        code = code_map.get(resource, ErrorCode.NOT_FOUND)

        super().__init__(code=code, message=message)
        self.resource = resource
        self.resource_id = resource_id


class DatabaseError(APIException):
    """
    Database operation error.

    HTTP Status: 500
    """

    def __init__(self, message: str = "A database error occurred"):
        super().__init__(
            code=ErrorCode.DATABASE_ERROR,
            message=message
        )


class ServiceUnavailableError(APIException):
    """
    A dependency is not ready.

    HTTP Status: 503
    """

    def __init__(self, message: str = "Service unavailable"):
        super().__init__(
            code=ErrorCode.SERVICE_UNAVAILABLE,
            message=message
        )
