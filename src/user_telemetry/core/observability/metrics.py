"""
OpenTelemetry Metrics

Instruments recorded by the users service.
"""

import logging
from typing import Callable, Iterable, Optional

from opentelemetry import metrics
from opentelemetry.metrics import CallbackOptions, Observation

logger = logging.getLogger(__name__)


class ServiceMetrics:
    """
    Application metrics bound to one meter.

    - users_created_total: monotonic counter, one per created user
    - db_pool_size: observable gauge, sampled on each export tick from
      the source registered with ``set_pool_size_source``
    - http_requests_total / http_request_duration_seconds: request
      counter and latency histogram
    """

    def __init__(self, meter: metrics.Meter):
        self._pool_size_source: Optional[Callable[[], int]] = None

        self.users_created = meter.create_counter(
            "users_created_total",
            description="Total users created",
            unit="1"
        )

        self.http_requests = meter.create_counter(
            "http_requests_total",
            description="Total HTTP requests",
            unit="1"
        )

        self.http_request_duration = meter.create_histogram(
            "http_request_duration_seconds",
            description="HTTP request duration",
            unit="s"
        )

        self.db_pool_size = meter.create_observable_gauge(
            "db_pool_size",
            callbacks=[self._observe_pool_size],
            description="Current number of connections in the database pool",
            unit="1"
        )

    def set_pool_size_source(self, source: Optional[Callable[[], int]]) -> None:
        """Register (or clear) the callable read by the pool-size gauge."""
        self._pool_size_source = source

    def _observe_pool_size(self, options: CallbackOptions) -> Iterable[Observation]:
        if self._pool_size_source is None:
            return []
        return [Observation(self._pool_size_source())]

    def record_user_created(self, value: int = 1) -> None:
        self.users_created.add(value)

    def record_request(
        self,
        method: str,
        route: str,
        status_code: int,
        duration: float
    ) -> None:
        """Record one finished HTTP request."""
        self.http_requests.add(1, {
            "method": method,
            "route": route,
            "status": str(status_code)
        })
        self.http_request_duration.record(duration, {
            "method": method,
            "route": route
        })
