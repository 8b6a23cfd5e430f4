"""
Tests for span helpers.
"""

import pytest
from opentelemetry.trace import StatusCode

from user_telemetry.core.observability.tracing import (
    CATEGORY_ATTRIBUTE,
    LEVEL_ATTRIBUTE,
    add_event_to_span,
    create_span,
    get_span_id,
    get_trace_id,
    mark_span_error,
)


def by_name(spans):
    return {span.name: span for span in spans}


class TestCreateSpan:
    """Nesting, attributes and failure marking."""

    def test_nested_spans_share_trace(self, telemetry, finished_spans):
        with create_span(telemetry.tracer, "outer"):
            with create_span(telemetry.tracer, "middle"):
                with create_span(telemetry.tracer, "inner"):
                    pass

        spans = by_name(finished_spans())
        outer, middle, inner = spans["outer"], spans["middle"], spans["inner"]

        assert outer.parent is None
        assert middle.parent.span_id == outer.context.span_id
        assert inner.parent.span_id == middle.context.span_id
        assert len({s.context.trace_id for s in spans.values()}) == 1

    def test_children_close_before_parents(self, telemetry, finished_spans):
        with create_span(telemetry.tracer, "outer"):
            with create_span(telemetry.tracer, "inner"):
                pass

        spans = finished_spans()
        assert [s.name for s in spans] == ["inner", "outer"]

        inner, outer = spans
        assert outer.start_time <= inner.start_time
        assert inner.end_time <= outer.end_time

    def test_siblings_do_not_overlap(self, telemetry, finished_spans):
        with create_span(telemetry.tracer, "parent"):
            with create_span(telemetry.tracer, "first"):
                pass
            with create_span(telemetry.tracer, "second"):
                pass

        spans = by_name(finished_spans())
        assert spans["first"].end_time <= spans["second"].start_time
        assert spans["first"].parent.span_id == spans["parent"].context.span_id
        assert spans["second"].parent.span_id == spans["parent"].context.span_id

    def test_default_attributes(self, telemetry, finished_spans):
        with create_span(telemetry.tracer, "db.query", {"db.statement": "SELECT users"}):
            pass

        [span] = finished_spans()
        assert span.attributes[CATEGORY_ATTRIBUTE] == "app"
        assert span.attributes[LEVEL_ATTRIBUTE] == "INFO"
        assert span.attributes["db.statement"] == "SELECT users"

    def test_exception_marks_span_and_propagates(self, telemetry, finished_spans):
        with pytest.raises(KeyError):
            with create_span(telemetry.tracer, "outer"):
                with create_span(telemetry.tracer, "failing"):
                    raise KeyError("missing")

        spans = by_name(finished_spans())
        failing = spans["failing"]

        assert failing.status.status_code == StatusCode.ERROR
        assert failing.attributes["error.type"] == "KeyError"
        assert [e.name for e in failing.events] == ["exception"]
        # Each span the exception passes through is closed and marked
        assert spans["outer"].status.status_code == StatusCode.ERROR

    def test_current_ids_follow_span(self, telemetry):
        assert get_trace_id() is None
        assert get_span_id() is None

        with create_span(telemetry.tracer, "work") as span:
            context = span.get_span_context()
            assert get_trace_id() == format(context.trace_id, "032x")
            assert get_span_id() == format(context.span_id, "016x")

        assert get_trace_id() is None


class TestSpanHelpers:
    """Error marking and events."""

    def test_mark_span_error_with_message(self, telemetry, finished_spans):
        with telemetry.tracer.start_as_current_span("request") as span:
            mark_span_error(span, RuntimeError("pool closed"), "Failed to fetch users")

        [span] = finished_spans()
        assert span.status.status_code == StatusCode.ERROR
        assert span.status.description == "Failed to fetch users"
        assert span.attributes["error.message"] == "Failed to fetch users"
        assert span.attributes["error.type"] == "RuntimeError"

    def test_mark_span_error_without_text(self, telemetry, finished_spans):
        with telemetry.tracer.start_as_current_span("request") as span:
            mark_span_error(span, ValueError())

        [span] = finished_spans()
        assert span.attributes["error.message"] == "ValueError"

    def test_add_event_to_current_span(self, telemetry, finished_spans):
        with create_span(telemetry.tracer, "add_user"):
            add_event_to_span("user.created", {"user.id": "abc"})

        [span] = finished_spans()
        [event] = span.events
        assert event.name == "user.created"
        assert event.attributes["user.id"] == "abc"

    def test_add_event_without_span_is_noop(self):
        add_event_to_span("orphan")
