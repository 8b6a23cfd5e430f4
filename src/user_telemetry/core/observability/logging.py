"""
Structured Logging with Trace Correlation

Configures logging to include trace_id and span_id, and applies a
per-logger level filter expression such as:

    info,user_telemetry.spans.http=trace,uvicorn=warning

The first bare level is the default; ``name=level`` entries override
individual loggers (and their children).
"""

import logging
import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict

from ..errors import ConfigurationError
from .tracing import get_trace_id, get_span_id

# Finer than DEBUG; used by the HTTP middleware's own spans
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

OFF = logging.CRITICAL + 10

_LEVEL_NAMES = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "off": OFF,
}


def level_from_name(name: str) -> int:
    """Resolve a level name (case-insensitive) to its numeric value."""
    try:
        return _LEVEL_NAMES[name.strip().lower()]
    except (KeyError, AttributeError):
        raise ValueError(f"unknown log level {name!r}") from None


@dataclass
class LogFilter:
    """Parsed filter expression."""

    default_level: int = logging.INFO
    overrides: Dict[str, int] = field(default_factory=dict)

    @property
    def lowest_level(self) -> int:
        return min([self.default_level, *self.overrides.values()])


def parse_log_filter(expression: str) -> LogFilter:
    """
    Parse a filter expression.

    Raises:
        ConfigurationError: on an unknown level or empty logger name
    """
    log_filter = LogFilter()
    for directive in (expression or "").split(","):
        directive = directive.strip()
        if not directive:
            continue
        try:
            if "=" in directive:
                target, _, level = directive.partition("=")
                target = target.strip()
                if not target:
                    raise ValueError(f"missing logger name in {directive!r}")
                log_filter.overrides[target] = level_from_name(level)
            else:
                log_filter.default_level = level_from_name(directive)
        except ValueError as e:
            raise ConfigurationError("LOG_FILTER", str(e)) from None
    return log_filter


class StructuredFormatter(logging.Formatter):
    """
    JSON structured log formatter with trace context.
    """

    _RESERVED = frozenset((
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "message", "taskName", "trace_id", "span_id",
    ))

    def format(self, record: logging.LogRecord) -> str:
        # Explicit ids (e.g. from the span bridge) win over the current span
        trace_id = getattr(record, "trace_id", None) or get_trace_id()
        span_id = getattr(record, "span_id", None) or get_span_id()

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "trace_id": trace_id,
            "span_id": span_id,
        }

        # Add exception info
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key in self._RESERVED or key.startswith("_"):
                continue
            try:
                json.dumps(value)  # Test if serializable
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        return json.dumps(log_entry)


class TraceContextFilter(logging.Filter):
    """
    Filter that adds trace context to log records.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "trace_id", None):
            record.trace_id = get_trace_id() or "no-trace"
        return True


def configure_logging(
    log_filter: str = "info",
    structured: bool = True,
    service_name: str = "user-telemetry"
) -> LogFilter:
    """
    Configure application logging.

    Args:
        log_filter: Filter expression (default level plus per-logger overrides)
        structured: Use JSON structured format
        service_name: Service name for logs

    Returns:
        The parsed filter
    """
    parsed = parse_log_filter(log_filter)

    root_logger = logging.getLogger()
    root_logger.setLevel(parsed.default_level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Loggers may be more verbose than the root, so the handler takes everything
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(parsed.lowest_level)

    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(trace_id)s] %(message)s"
        ))
        handler.addFilter(TraceContextFilter())

    root_logger.addHandler(handler)

    # Set levels for noisy loggers unless the filter names them
    for noisy in ("uvicorn.access", "httpx", "opentelemetry"):
        if noisy not in parsed.overrides:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    for name, level in parsed.overrides.items():
        logging.getLogger(name).setLevel(level)

    logging.info(f"Logging configured: {service_name}, filter={log_filter!r}, structured={structured}")
    return parsed
