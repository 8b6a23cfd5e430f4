"""
Telemetry Provider

Builds the process's tracing and metrics pipelines:

- one TracerProvider with a single BatchSpanProcessor feeding an OTLP/gRPC
  span exporter (flushed on batch size or on the schedule timer, from a
  background worker thread);
- one MeterProvider with a single PeriodicExportingMetricReader feeding
  an OTLP/gRPC metric exporter.

Both share one Resource. The resulting TelemetryProvider is handed to
the app and the lifecycle controller explicitly; nothing is registered
in OpenTelemetry's global provider slots.
"""

import logging
import threading
import time
from typing import Optional

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from ..config import TelemetryConfig
from ..errors import TelemetryInitError
from .bridge import LevelFilterSpanProcessor
from .logging import level_from_name
from .metrics import ServiceMetrics

logger = logging.getLogger(__name__)

DEPLOYMENT_ENVIRONMENT = "deployment.environment"


class TelemetryProvider:
    """
    Owns the tracer and meter providers for the process lifetime.

    Exposes the tracer, meter and service metrics handles; ``shutdown``
    flushes both pipelines and takes effect exactly once.
    """

    def __init__(
        self,
        config: TelemetryConfig,
        tracer_provider: TracerProvider,
        meter_provider: MeterProvider
    ):
        self.config = config
        self.tracer_provider = tracer_provider
        self.meter_provider = meter_provider

        self.tracer: trace.Tracer = tracer_provider.get_tracer(
            config.service_name, config.service_version
        )
        self.meter: metrics.Meter = meter_provider.get_meter(
            config.service_name, config.service_version
        )
        self.metrics = ServiceMetrics(self.meter)

        self._lock = threading.Lock()
        self._is_shutdown = False

    @property
    def resource(self) -> Resource:
        return self.tracer_provider.resource

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def add_span_processor(self, processor: SpanProcessor) -> None:
        self.tracer_provider.add_span_processor(processor)

    def force_flush(self, timeout_millis: Optional[int] = None) -> bool:
        """Export everything buffered so far without shutting down."""
        timeout_millis = timeout_millis or self.config.shutdown_timeout_millis
        spans_flushed = self.tracer_provider.force_flush(timeout_millis)
        metrics_flushed = self.meter_provider.force_flush(timeout_millis)
        return bool(spans_flushed and metrics_flushed)

    def shutdown(self, timeout_millis: Optional[int] = None) -> bool:
        """
        Flush and stop both pipelines within ``timeout_millis``.

        Returns False if the provider was already shut down or the span
        flush did not finish in time.
        """
        with self._lock:
            if self._is_shutdown:
                logger.warning("Telemetry provider already shut down")
                return False
            self._is_shutdown = True

        timeout_millis = timeout_millis or self.config.shutdown_timeout_millis
        deadline = time.monotonic() + timeout_millis / 1000

        logger.info(f"Flushing telemetry (timeout={timeout_millis}ms)")

        flushed = self.tracer_provider.force_flush(timeout_millis)
        if not flushed:
            logger.warning("Span flush did not complete before the shutdown timeout")
        self.tracer_provider.shutdown()

        remaining = max(int((deadline - time.monotonic()) * 1000), 1)
        self.meter_provider.shutdown(timeout_millis=remaining)

        logger.info("Telemetry shut down")
        return flushed


def build_resource(config: TelemetryConfig) -> Resource:
    """Resource attributes attached to every span and metric."""
    return Resource.create({
        SERVICE_NAME: config.service_name,
        SERVICE_VERSION: config.service_version,
        DEPLOYMENT_ENVIRONMENT: config.environment,
    })


def init_telemetry(
    config: TelemetryConfig,
    *,
    span_exporter: Optional[SpanExporter] = None,
    metric_exporter: Optional[MetricExporter] = None,
    metric_reader: Optional[MetricReader] = None
) -> TelemetryProvider:
    """
    Initialize OpenTelemetry tracing and metrics.

    Args:
        config: Telemetry settings
        span_exporter: Replaces the OTLP span exporter (tests)
        metric_exporter: Replaces the OTLP metric exporter (tests)
        metric_reader: Replaces the periodic reader entirely (tests)

    Returns:
        Configured TelemetryProvider

    Raises:
        TelemetryInitError: if any exporter or provider cannot be built
    """
    resource = build_resource(config)

    try:
        if span_exporter is None:
            span_exporter = OTLPSpanExporter(
                endpoint=config.traces_endpoint,
                insecure=config.insecure,
                timeout=config.export_timeout_seconds
            )
            logger.info(f"OTel tracing: OTLP exporter configured -> {config.traces_endpoint}")
    except Exception as e:
        raise TelemetryInitError(f"Failed to create OTLP span exporter: {e}") from e

    try:
        if metric_reader is None:
            if metric_exporter is None:
                metric_exporter = OTLPMetricExporter(
                    endpoint=config.metrics_endpoint,
                    insecure=config.insecure,
                    timeout=config.export_timeout_seconds
                )
                logger.info(f"OTel metrics: OTLP exporter configured -> {config.metrics_endpoint}")
            metric_reader = PeriodicExportingMetricReader(
                metric_exporter,
                export_interval_millis=config.metric_export_interval_millis,
                export_timeout_millis=config.export_timeout_seconds * 1000
            )
    except Exception as e:
        raise TelemetryInitError(f"Failed to create OTLP metric exporter: {e}") from e

    try:
        tracer_provider = TracerProvider(resource=resource)
        batch_processor = BatchSpanProcessor(
            span_exporter,
            max_queue_size=config.max_queue_size,
            schedule_delay_millis=config.schedule_delay_millis,
            max_export_batch_size=config.max_export_batch_size,
            export_timeout_millis=config.export_timeout_seconds * 1000
        )
        tracer_provider.add_span_processor(LevelFilterSpanProcessor(
            batch_processor,
            min_level=level_from_name(config.export_level)
        ))

        meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    except Exception as e:
        raise TelemetryInitError(f"Failed to build telemetry providers: {e}") from e

    provider = TelemetryProvider(config, tracer_provider, meter_provider)

    logger.info(
        f"OTel initialized: {config.service_name} v{config.service_version} "
        f"(export level {config.export_level})"
    )
    return provider
