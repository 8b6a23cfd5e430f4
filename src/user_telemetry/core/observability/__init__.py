"""
Observability Module

Provides trace-context propagation, the telemetry provider (tracing and
metrics pipelines), the console span bridge and structured logging.
"""

from .propagation import (
    TraceContext,
    TRACEPARENT_HEADER,
    parse_traceparent,
    format_traceparent,
    extract,
    inject,
    to_otel_context,
    from_span_context,
)
from .tracing import (
    get_current_span,
    get_trace_id,
    get_span_id,
    create_span,
    mark_span_error,
    add_event_to_span,
)
from .metrics import ServiceMetrics
from .bridge import ConsoleSpanProcessor, LevelFilterSpanProcessor, install_bridge
from .provider import TelemetryProvider, init_telemetry
from .logging import TRACE, configure_logging, parse_log_filter

__all__ = [
    # Propagation
    "TraceContext",
    "TRACEPARENT_HEADER",
    "parse_traceparent",
    "format_traceparent",
    "extract",
    "inject",
    "to_otel_context",
    "from_span_context",
    # Tracing
    "get_current_span",
    "get_trace_id",
    "get_span_id",
    "create_span",
    "mark_span_error",
    "add_event_to_span",
    # Metrics
    "ServiceMetrics",
    # Bridge
    "ConsoleSpanProcessor",
    "LevelFilterSpanProcessor",
    "install_bridge",
    # Provider
    "TelemetryProvider",
    "init_telemetry",
    # Logging
    "TRACE",
    "configure_logging",
    "parse_log_filter",
]
