"""
Span Bridge

Fans every span out to two independent sinks:

- the console: ConsoleSpanProcessor logs span open/close through stdlib
  logging, under ``user_telemetry.spans.<category>``, so the log filter
  expression decides what a human sees;
- the exporter: LevelFilterSpanProcessor forwards ended spans at or
  above the export level to the batching pipeline, together with the
  request root and any ancestors those spans need.

Spans carry ``telemetry.category`` and ``telemetry.level`` attributes;
HTTP middleware spans are category ``http`` at TRACE, so they can be
silenced on the console without hiding application spans.
"""

import logging
import threading
from typing import Optional, Set, Tuple

from opentelemetry.context import Context
from opentelemetry.sdk.trace import ReadableSpan, Span, SpanProcessor

from .logging import TRACE, level_from_name
from .tracing import APP_CATEGORY, CATEGORY_ATTRIBUTE, LEVEL_ATTRIBUTE

logger = logging.getLogger(__name__)

SPAN_LOGGER_PREFIX = "user_telemetry.spans"


def _span_level(span: ReadableSpan) -> int:
    attributes = span.attributes or {}
    try:
        return level_from_name(attributes.get(LEVEL_ATTRIBUTE, "INFO"))
    except ValueError:
        return logging.INFO


def _span_category(span: ReadableSpan) -> str:
    attributes = span.attributes or {}
    return str(attributes.get(CATEGORY_ATTRIBUTE, APP_CATEGORY))


def _span_ids(span: ReadableSpan) -> dict:
    context = span.get_span_context()
    ids = {
        "trace_id": format(context.trace_id, "032x"),
        "span_id": format(context.span_id, "016x"),
    }
    if span.parent is not None:
        ids["parent_span_id"] = format(span.parent.span_id, "016x")
    return ids


class ConsoleSpanProcessor(SpanProcessor):
    """
    Writes span lifecycle events to the console log.

    One line when a span opens and one when it closes (with duration,
    status, attributes and recorded events).
    """

    def __init__(self, logger_prefix: str = SPAN_LOGGER_PREFIX):
        self.logger_prefix = logger_prefix

    def _target(self, span: ReadableSpan) -> Tuple[logging.Logger, int]:
        return (
            logging.getLogger(f"{self.logger_prefix}.{_span_category(span)}"),
            _span_level(span),
        )

    def on_start(self, span: Span, parent_context: Optional[Context] = None) -> None:
        span_logger, level = self._target(span)
        if not span_logger.isEnabledFor(level):
            return
        span_logger.log(
            level,
            f"new {span.name}",
            extra={"span": span.name, "span_event": "new", **_span_ids(span)},
        )

    def on_end(self, span: ReadableSpan) -> None:
        span_logger, level = self._target(span)
        if not span_logger.isEnabledFor(level):
            return

        extra = {
            "span": span.name,
            "span_event": "close",
            "status": span.status.status_code.name,
            "attributes": dict(span.attributes or {}),
            **_span_ids(span),
        }
        if span.start_time is not None and span.end_time is not None:
            extra["duration_ms"] = round((span.end_time - span.start_time) / 1e6, 3)

        for event in span.events:
            span_logger.log(
                level,
                f"event {event.name} in {span.name}",
                extra={"span": span.name, "span_event": event.name,
                       "attributes": dict(event.attributes or {}), **_span_ids(span)},
            )

        span_logger.log(level, f"close {span.name}", extra=extra)

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


class LevelFilterSpanProcessor(SpanProcessor):
    """
    Forwards spans to ``delegate`` when their level is at or above
    ``min_level``.

    Exported trees stay connected: a span below the level is still
    forwarded when it is a local root (the request span named in the
    response ``traceparent``) or the parent of a forwarded span.
    Children end before their parents, so by the time a parent ends it
    is known whether anything below it was exported.
    """

    def __init__(self, delegate: SpanProcessor, min_level: int = TRACE):
        self.delegate = delegate
        self.min_level = min_level
        self._lock = threading.Lock()
        self._required_parents: Set[int] = set()

    def _enabled(self, span: ReadableSpan) -> bool:
        return _span_level(span) >= self.min_level

    def on_start(self, span: Span, parent_context: Optional[Context] = None) -> None:
        if self._enabled(span):
            self.delegate.on_start(span, parent_context=parent_context)

    def on_end(self, span: ReadableSpan) -> None:
        parent = span.parent
        is_local_root = parent is None or parent.is_remote

        span_id = span.get_span_context().span_id

        with self._lock:
            required = span_id in self._required_parents
            self._required_parents.discard(span_id)
            if not (required or is_local_root or self._enabled(span)):
                return
            if not is_local_root:
                self._required_parents.add(parent.span_id)

        self.delegate.on_end(span)

    def shutdown(self) -> None:
        self.delegate.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self.delegate.force_flush(timeout_millis)


def install_bridge(telemetry, console_spans: bool = True) -> Optional[ConsoleSpanProcessor]:
    """
    Attach the console sink to a TelemetryProvider.

    The export sink is wired by the provider itself; this only adds the
    human-facing side. Returns the processor, or None when disabled.
    """
    if not console_spans:
        logger.info("Console span sink disabled")
        return None

    processor = ConsoleSpanProcessor()
    telemetry.add_span_processor(processor)
    logger.info(f"Console span sink enabled under {SPAN_LOGGER_PREFIX}.*")
    return processor
