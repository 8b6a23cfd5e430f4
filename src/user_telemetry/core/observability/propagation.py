"""
W3C Trace Context Propagation

Encodes and decodes the ``traceparent`` header:

    00-<trace_id:32 hex>-<span_id:16 hex>-<flags:2 hex>

Parsing and serialization go through OpenTelemetry's
TraceContextTextMapPropagator, used as a local instance (nothing is
registered globally). On top of it only version ``00`` in canonical
lowercase form is accepted, and only the sampled bit of the flags is
sent on.

A malformed header is never an error, it only means "no incoming
context" and the caller starts a new trace.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, MutableMapping, Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import NonRecordingSpan, SpanContext, TraceFlags
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

TRACEPARENT_HEADER = "traceparent"
TRACEPARENT_LENGTH = 55
SUPPORTED_VERSION = 0x00
SAMPLED_FLAG = 0x01

_VERSION_PREFIX = f"{SUPPORTED_VERSION:02x}-"

_propagator = TraceContextTextMapPropagator()


@dataclass(frozen=True)
class TraceContext:
    """
    Identity of one span within a trace, as carried across process
    boundaries.

    trace_id is shared by every span of a request chain; span_id
    identifies the sending span.
    """

    trace_id: int
    span_id: int
    trace_flags: int = SAMPLED_FLAG
    version: int = SUPPORTED_VERSION

    @property
    def sampled(self) -> bool:
        return bool(self.trace_flags & SAMPLED_FLAG)

    @property
    def trace_id_hex(self) -> str:
        return format(self.trace_id, "032x")

    @property
    def span_id_hex(self) -> str:
        return format(self.span_id, "016x")


def format_traceparent(context: TraceContext) -> str:
    """Serialize to the canonical 55-character header value."""
    carrier: Dict[str, str] = {}
    _propagator.inject(carrier, context=to_otel_context(context))
    return carrier[TRACEPARENT_HEADER]


def parse_traceparent(value: Optional[str]) -> Optional[TraceContext]:
    """
    Parse a ``traceparent`` header value.

    Returns None for anything that is not a well-formed version-00
    header with non-zero ids. Never raises.
    """
    if not isinstance(value, str):
        return None
    value = value.strip()

    # The propagator also admits future versions and trailing fields
    if (
        len(value) != TRACEPARENT_LENGTH
        or not value.startswith(_VERSION_PREFIX)
        or value != value.lower()
    ):
        return None

    extracted = _propagator.extract({TRACEPARENT_HEADER: value})
    span_context = trace.get_current_span(extracted).get_span_context()
    if not span_context.is_valid:
        return None

    return TraceContext(
        trace_id=span_context.trace_id,
        span_id=span_context.span_id,
        trace_flags=int(span_context.trace_flags),
    )


def _get_header(headers: Mapping[str, Any], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if isinstance(key, str) and key.lower() == name:
                return candidate
    return value


def extract(headers: Optional[Mapping[str, Any]]) -> Optional[TraceContext]:
    """
    Extract trace context from an HTTP header mapping.

    Header lookup is case-insensitive. Returns None when the header is
    absent or malformed.
    """
    if not headers:
        return None
    return parse_traceparent(_get_header(headers, TRACEPARENT_HEADER))


def inject(
    context: TraceContext,
    headers: MutableMapping[str, str],
) -> MutableMapping[str, str]:
    """Write ``traceparent`` into a mutable header mapping and return it."""
    _propagator.inject(headers, context=to_otel_context(context))
    return headers


def to_otel_context(context: TraceContext) -> Context:
    """
    Build an OpenTelemetry Context whose parent is the remote span
    described by ``context``.
    """
    span_context = SpanContext(
        trace_id=context.trace_id,
        span_id=context.span_id,
        is_remote=True,
        trace_flags=TraceFlags(context.trace_flags),
    )
    return trace.set_span_in_context(NonRecordingSpan(span_context), Context())


def from_span_context(span_context: SpanContext) -> Optional[TraceContext]:
    """
    Convert an OpenTelemetry SpanContext; None if it is invalid.

    Only the sampled bit is kept: the SDK may set other flag bits (the
    W3C "random" bit) that are not sent on the wire.
    """
    if span_context is None or not span_context.is_valid:
        return None
    return TraceContext(
        trace_id=span_context.trace_id,
        span_id=span_context.span_id,
        trace_flags=int(span_context.trace_flags) & SAMPLED_FLAG,
    )
