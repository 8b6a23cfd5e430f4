"""
Shared Test Fixtures

Telemetry is built with in-memory exporters; the database is an
in-memory fake implementing the adapter interface.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from helpers import FakeDatabase, make_telemetry_config
from user_telemetry.api.users import create_app
from user_telemetry.core.config import TelemetryConfig
from user_telemetry.core.errors import DataAccessError
from user_telemetry.core.observability import init_telemetry


@pytest.fixture
def telemetry_config() -> TelemetryConfig:
    return make_telemetry_config()


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture
def telemetry(telemetry_config, span_exporter, metric_reader):
    """Telemetry provider wired to in-memory sinks."""
    provider = init_telemetry(
        telemetry_config,
        span_exporter=span_exporter,
        metric_reader=metric_reader
    )
    yield provider
    if not provider.is_shutdown:
        provider.shutdown()


@pytest.fixture
def finished_spans(telemetry, span_exporter):
    """Flush the batch pipeline and return every exported span."""
    def collect():
        telemetry.tracer_provider.force_flush()
        return list(span_exporter.get_finished_spans())
    return collect


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def app(telemetry, database):
    return create_app(telemetry, database)


@pytest.fixture
async def client(app):
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def data_access_failure() -> DataAccessError:
    return DataAccessError("ConnectionDoesNotExistError: connection was closed")
