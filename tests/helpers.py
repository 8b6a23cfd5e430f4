"""
Test helpers shared by unit and e2e tests.
"""

import asyncio
from typing import Any, Dict, List, Optional
from uuid import UUID

from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from user_telemetry.core.config import TelemetryConfig


class FakeDatabase:
    """In-memory stand-in for DatabaseAdapter."""

    def __init__(self):
        self.users: Dict[UUID, Dict[str, Any]] = {}
        self.connected = True
        self.fail_with: Optional[Exception] = None
        self.query_delay = 0.0
        self.migrations_run = 0

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    def pool_size(self) -> int:
        return 3

    async def run_migrations(self) -> List[str]:
        self.migrations_run += 1
        return []

    async def _before_query(self) -> None:
        if self.query_delay:
            await asyncio.sleep(self.query_delay)
        if self.fail_with is not None:
            raise self.fail_with

    async def fetch(self, query: str, *args) -> List[Dict[str, Any]]:
        await self._before_query()
        return [dict(row) for row in self.users.values()]

    async def fetchrow(self, query: str, *args) -> Optional[Dict[str, Any]]:
        await self._before_query()
        row = self.users.get(args[0])
        return dict(row) if row else None

    async def fetchval(self, query: str, *args) -> Any:
        await self._before_query()
        return 1

    async def execute(self, query: str, *args) -> str:
        await self._before_query()
        user_id, first_name, last_name = args
        self.users[user_id] = {
            "id": user_id,
            "first_name": first_name,
            "last_name": last_name,
        }
        return "INSERT 0 1"


def make_telemetry_config(**overrides) -> TelemetryConfig:
    settings = {
        "traces_endpoint": "http://collector:4317",
        "metrics_endpoint": "http://collector:4317",
        "service_name": "user-telemetry-test",
        "service_version": "9.9.9",
        "environment": "test",
        # Large delay: spans leave the queue only on flush or shutdown
        "schedule_delay_millis": 60000,
        "shutdown_timeout_millis": 5000,
    }
    settings.update(overrides)
    return TelemetryConfig(**settings)


def metric_points(reader: InMemoryMetricReader, name: str) -> list:
    """All data points recorded for a metric name."""
    data = reader.get_metrics_data()
    points = []
    if data is None:
        return points
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name == name:
                    points.extend(metric.data.data_points)
    return points


