"""
Shared API Middleware

Provides cross-cutting concerns for all API endpoints:
- Error handling with standardized responses
- OpenTelemetry distributed tracing with W3C trace context propagation
"""

from .error_handler import register_error_handlers
from .tracing import TracingMiddleware, dispatched_route, resolve_route

__all__ = [
    # Error handling
    "register_error_handlers",
    # OpenTelemetry Tracing
    "TracingMiddleware",
    "resolve_route",
    "dispatched_route",
]
