"""
OpenTelemetry Tracing Helpers

Manual span instrumentation for handlers and data access. The tracer is
always passed in explicitly; only the "current span" lives in the
task-local OpenTelemetry context.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

logger = logging.getLogger(__name__)

# Span attributes read by the console bridge
CATEGORY_ATTRIBUTE = "telemetry.category"
LEVEL_ATTRIBUTE = "telemetry.level"

APP_CATEGORY = "app"
HTTP_CATEGORY = "http"


def get_current_span() -> Optional[Span]:
    """Get the current active span."""
    return trace.get_current_span()


def get_trace_id() -> Optional[str]:
    """Get the current trace ID as hex string."""
    span = get_current_span()
    if span and span.get_span_context().is_valid:
        return format(span.get_span_context().trace_id, '032x')
    return None


def get_span_id() -> Optional[str]:
    """Get the current span ID as hex string."""
    span = get_current_span()
    if span and span.get_span_context().is_valid:
        return format(span.get_span_context().span_id, '016x')
    return None


def mark_span_error(
    span: Span,
    exc: BaseException,
    message: Optional[str] = None
) -> None:
    """
    Record a failure on a span: status ERROR plus error.type and
    error.message attributes.
    """
    description = message or str(exc) or type(exc).__name__
    span.set_status(Status(StatusCode.ERROR, description))
    span.set_attribute("error.type", type(exc).__name__)
    span.set_attribute("error.message", description)
    span.record_exception(exc)


@contextmanager
def create_span(
    tracer: trace.Tracer,
    name: str,
    attributes: Dict[str, Any] = None,
    level: str = "INFO",
    kind: trace.SpanKind = trace.SpanKind.INTERNAL
) -> Iterator[Span]:
    """
    Open a child of the current span as a context manager.

    Usage:
        with create_span(tracer, "db.query", {"db.statement": "SELECT users"}) as span:
            rows = await db.fetch(...)
            span.set_attribute("db.row_count", len(rows))

    Spans close in strict LIFO order. An exception leaving the block
    marks the span as failed and propagates unchanged.
    """
    span_attributes = {
        CATEGORY_ATTRIBUTE: APP_CATEGORY,
        LEVEL_ATTRIBUTE: level,
    }
    span_attributes.update(attributes or {})

    with tracer.start_as_current_span(
        name,
        kind=kind,
        attributes=span_attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            mark_span_error(span, e)
            raise


def add_event_to_span(
    name: str,
    attributes: Dict[str, Any] = None,
    span: Optional[Span] = None
):
    """Add an event to the current span."""
    span = span or get_current_span()
    if span:
        span.add_event(name, attributes or {})
