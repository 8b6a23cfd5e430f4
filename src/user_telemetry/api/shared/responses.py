"""
Error Response Models

Shape of every error body returned by the API:

    {
        "error": {
            "code": "USER_NOT_FOUND",
            "message": "User with ID '...' not found",
            "details": [...],
            "trace_id": "4bf92f3577b34da6a3ce929d0e0e4736",
            "timestamp": "2026-01-19T12:00:00Z"
        }
    }

trace_id is the OpenTelemetry trace of the failed request.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class ErrorDetail(BaseModel):
    """Detailed error information for validation errors."""

    field: Optional[str] = None
    message: str
    code: Optional[str] = None


class ErrorBody(BaseModel):
    """Error body with code, message, and details."""

    code: str
    message: str
    details: Optional[List[ErrorDetail]] = None
    trace_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: ErrorBody
