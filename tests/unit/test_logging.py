"""
Tests for the log filter expression and structured formatter.
"""

import json
import logging

import pytest

from user_telemetry.core.errors import ConfigurationError
from user_telemetry.core.observability.logging import (
    OFF,
    TRACE,
    StructuredFormatter,
    TraceContextFilter,
    configure_logging,
    level_from_name,
    parse_log_filter,
)


@pytest.fixture
def restore_logging():
    """Put the root logger and touched loggers back after the test."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    touched = ["user_telemetry.spans.http", "uvicorn.access", "httpx", "opentelemetry"]
    saved_levels = {name: logging.getLogger(name).level for name in touched}
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
    for name, level in saved_levels.items():
        logging.getLogger(name).setLevel(level)


class TestLevels:
    """Level names."""

    def test_trace_is_below_debug(self):
        assert TRACE < logging.DEBUG
        assert logging.getLevelName(TRACE) == "TRACE"

    @pytest.mark.parametrize("name,level", [
        ("trace", TRACE),
        ("DEBUG", logging.DEBUG),
        ("Info", logging.INFO),
        ("warn", logging.WARNING),
        ("error", logging.ERROR),
        ("off", OFF),
    ])
    def test_level_from_name(self, name, level):
        assert level_from_name(name) == level

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            level_from_name("loud")


class TestParseLogFilter:
    """Filter expression parsing."""

    def test_default_only(self):
        parsed = parse_log_filter("warn")
        assert parsed.default_level == logging.WARNING
        assert parsed.overrides == {}

    def test_overrides(self):
        parsed = parse_log_filter("info, user_telemetry.spans.http=trace ,uvicorn=error")

        assert parsed.default_level == logging.INFO
        assert parsed.overrides == {
            "user_telemetry.spans.http": TRACE,
            "uvicorn": logging.ERROR,
        }
        assert parsed.lowest_level == TRACE

    def test_empty_expression(self):
        parsed = parse_log_filter("")
        assert parsed.default_level == logging.INFO

    @pytest.mark.parametrize("expression", ["loud", "info,=debug", "info,app=chatty"])
    def test_invalid_expression(self, expression):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_log_filter(expression)
        assert exc_info.value.variable == "LOG_FILTER"


class TestConfigureLogging:
    """Root logger setup."""

    def test_applies_filter(self, restore_logging):
        configure_logging("warning,user_telemetry.spans.http=trace", structured=True)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert logging.getLogger("user_telemetry.spans.http").level == TRACE
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

        handler = root.handlers[-1]
        assert handler.level == TRACE
        assert isinstance(handler.formatter, StructuredFormatter)

    def test_plain_format_adds_trace_filter(self, restore_logging):
        configure_logging("info", structured=False)

        handler = logging.getLogger().handlers[-1]
        assert any(isinstance(f, TraceContextFilter) for f in handler.filters)

    def test_invalid_filter_raises(self, restore_logging):
        with pytest.raises(ConfigurationError):
            configure_logging("nonsense")


class TestStructuredFormatter:
    """JSON log lines carry trace context."""

    def _record(self, **extra):
        record = logging.LogRecord(
            name="user_telemetry.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="hello %s",
            args=("world",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_outside_span(self):
        entry = json.loads(StructuredFormatter().format(self._record()))

        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "user_telemetry.test"
        assert entry["trace_id"] is None

    def test_inside_span(self, telemetry):
        with telemetry.tracer.start_as_current_span("work") as span:
            entry = json.loads(StructuredFormatter().format(self._record()))
            context = span.get_span_context()

        assert entry["trace_id"] == format(context.trace_id, "032x")
        assert entry["span_id"] == format(context.span_id, "016x")

    def test_explicit_ids_and_extra_fields(self):
        record = self._record(trace_id="a" * 32, span_id="b" * 16, path="/users", obj=object())
        entry = json.loads(StructuredFormatter().format(record))

        assert entry["trace_id"] == "a" * 32
        assert entry["span_id"] == "b" * 16
        assert entry["path"] == "/users"
        assert isinstance(entry["obj"], str)
