"""
OpenTelemetry Tracing Middleware

FastAPI middleware for automatic request tracing with OpenTelemetry.
Installed once on the app, so every route is traced.
"""

import time
import logging
from typing import Callable, Optional

from fastapi import Request, Response
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Status, StatusCode
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match
from starlette.types import ASGIApp

from ....core.observability.logging import TRACE
from ....core.observability.propagation import (
    extract,
    format_traceparent,
    from_span_context,
    inject,
    to_otel_context,
)
from ....core.observability.provider import TelemetryProvider
from ....core.observability.tracing import (
    CATEGORY_ATTRIBUTE,
    HTTP_CATEGORY,
    LEVEL_ATTRIBUTE,
)

logger = logging.getLogger(__name__)

UNMATCHED_ROUTE = "unmatched"


def resolve_route(request: Request) -> Optional[str]:
    """
    Find the route template for a request (``/user/{id}``, not the
    literal path) before it is dispatched. Falls back to a route that
    matches the path but not the method; None when nothing matches.

    Only a first guess for naming the span: the router records the route
    it actually dispatched to in the scope (see ``dispatched_route``).
    """
    router = getattr(request.scope.get("app"), "router", None)
    if router is None:
        return None

    partial = None
    for route in router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", None)
        if match == Match.PARTIAL and partial is None:
            partial = getattr(route, "path", None)
    return partial


def dispatched_route(request: Request) -> Optional[str]:
    """Template of the route the router dispatched to, once it has run."""
    return getattr(request.scope.get("route"), "path", None)


class TracingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that creates OpenTelemetry spans for HTTP requests.

    Features:
    - Extracts W3C trace context from incoming headers
    - Creates a SERVER span named after the route template
    - Adds standard HTTP attributes
    - Maps 5xx responses and unhandled exceptions to span status ERROR
    - Injects the request span's traceparent into the response
    - Records request metrics
    """

    def __init__(self, app: ASGIApp, telemetry: TelemetryProvider):
        super().__init__(app)
        self.telemetry = telemetry

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Continue the caller's trace, or start a new root
        incoming = extract(request.headers)
        parent = to_otel_context(incoming) if incoming else Context()

        method = request.method
        route = resolve_route(request)
        span_name = f"{method} {route}" if route else method

        tracer = self.telemetry.tracer
        start_time = time.perf_counter()

        with tracer.start_as_current_span(
            span_name,
            context=parent,
            kind=trace.SpanKind.SERVER,
            attributes={
                "http.method": method,
                "http.route": route or UNMATCHED_ROUTE,
                "http.target": request.url.path,
                "http.scheme": request.url.scheme,
                "http.user_agent": request.headers.get("user-agent", ""),
                CATEGORY_ATTRIBUTE: HTTP_CATEGORY,
                LEVEL_ATTRIBUTE: logging.getLevelName(TRACE),
            },
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            current = from_span_context(span.get_span_context())

            # Error handlers outside this middleware echo it back
            request.state.traceparent = format_traceparent(current)

            try:
                response = await call_next(request)
            except Exception as e:
                route = self._apply_dispatched_route(span, request, method, route)
                span.set_attribute("http.status_code", 500)
                span.set_status(Status(StatusCode.ERROR, str(e) or type(e).__name__))
                span.record_exception(e)
                self._record_metrics(method, route, 500, start_time)
                raise

            route = self._apply_dispatched_route(span, request, method, route)

            status_code = response.status_code
            span.set_attribute("http.status_code", status_code)
            if status_code >= 500:
                span.set_status(Status(StatusCode.ERROR, f"HTTP {status_code}"))
            else:
                span.set_status(Status(StatusCode.OK))

            inject(current, response.headers)
            self._record_metrics(method, route, status_code, start_time)

            return response

    @staticmethod
    def _apply_dispatched_route(
        span: trace.Span,
        request: Request,
        method: str,
        route: Optional[str]
    ) -> Optional[str]:
        # The shared scope dict carries the route the router picked
        matched = dispatched_route(request)
        if matched is None or matched == route:
            return route
        span.update_name(f"{method} {matched}")
        span.set_attribute("http.route", matched)
        return matched

    def _record_metrics(
        self,
        method: str,
        route: Optional[str],
        status_code: int,
        start_time: float
    ) -> None:
        self.telemetry.metrics.record_request(
            method,
            route or UNMATCHED_ROUTE,
            status_code,
            time.perf_counter() - start_time
        )
