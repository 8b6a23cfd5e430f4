"""
Service Configuration

Reads all settings from environment variables. Every invalid or missing
required value raises ConfigurationError naming the variable, so the
process can refuse to start with a clear diagnostic.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlparse

from .errors import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

SPAN_LEVELS = ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR")


def _get(env: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = _get(env, name)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(name, f"expected a boolean, got {value!r}")


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    value = _get(env, name)
    if value is None:
        return default
    try:
        number = int(value)
    except ValueError:
        raise ConfigurationError(name, f"expected an integer, got {value!r}") from None
    if number < minimum:
        raise ConfigurationError(name, f"must be >= {minimum}, got {number}")
    return number


def validate_endpoint(name: str, value: Optional[str]) -> str:
    """
    Validate an OTLP/gRPC collector endpoint.

    Accepts ``http://host[:port]`` or ``https://host[:port]``.
    """
    if not value:
        raise ConfigurationError(name, "collector endpoint is required")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ConfigurationError(
            name, f"expected http(s)://host[:port], got {value!r}"
        )
    try:
        parsed.port
    except ValueError:
        raise ConfigurationError(name, f"invalid port in {value!r}") from None
    return value


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry pipeline settings."""

    traces_endpoint: str
    metrics_endpoint: str
    service_name: str = "user-telemetry"
    service_version: str = "1.0.0"
    environment: str = "development"
    insecure: bool = True
    export_timeout_seconds: int = 10
    max_export_batch_size: int = 512
    schedule_delay_millis: int = 5000
    max_queue_size: int = 2048
    metric_export_interval_millis: int = 60000
    shutdown_timeout_millis: int = 30000
    console_spans: bool = True
    export_level: str = "TRACE"

    def __post_init__(self):
        if not self.service_name:
            raise ConfigurationError("OTEL_SERVICE_NAME", "service name must not be empty")
        if self.export_level not in SPAN_LEVELS:
            raise ConfigurationError(
                "OTEL_SPAN_EXPORT_LEVEL",
                f"expected one of {', '.join(SPAN_LEVELS)}, got {self.export_level!r}",
            )
        if self.max_export_batch_size > self.max_queue_size:
            raise ConfigurationError(
                "OTEL_BSP_MAX_EXPORT_BATCH_SIZE",
                "batch size must not exceed OTEL_BSP_MAX_QUEUE_SIZE",
            )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "TelemetryConfig":
        env = os.environ if env is None else env

        base = _get(env, "OTEL_EXPORTER_OTLP_ENDPOINT")
        traces = _get(env, "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", base)
        metrics = _get(env, "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT", base)

        return cls(
            traces_endpoint=validate_endpoint(
                "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT" if base is None else "OTEL_EXPORTER_OTLP_ENDPOINT",
                traces,
            ),
            metrics_endpoint=validate_endpoint(
                "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT" if base is None else "OTEL_EXPORTER_OTLP_ENDPOINT",
                metrics,
            ),
            service_name=_get(env, "OTEL_SERVICE_NAME", "user-telemetry"),
            service_version=_get(env, "APP_VERSION", "1.0.0"),
            environment=_get(env, "APP_ENV", "development"),
            insecure=_get_bool(env, "OTEL_EXPORTER_OTLP_INSECURE", True),
            export_timeout_seconds=_get_int(env, "OTEL_EXPORTER_OTLP_TIMEOUT", 10),
            max_export_batch_size=_get_int(env, "OTEL_BSP_MAX_EXPORT_BATCH_SIZE", 512),
            schedule_delay_millis=_get_int(env, "OTEL_BSP_SCHEDULE_DELAY", 5000),
            max_queue_size=_get_int(env, "OTEL_BSP_MAX_QUEUE_SIZE", 2048),
            metric_export_interval_millis=_get_int(env, "OTEL_METRIC_EXPORT_INTERVAL", 60000),
            shutdown_timeout_millis=_get_int(env, "OTEL_SHUTDOWN_TIMEOUT", 30000),
            console_spans=_get_bool(env, "OTEL_CONSOLE_SPANS", True),
            export_level=_get(env, "OTEL_SPAN_EXPORT_LEVEL", "TRACE").upper(),
        )


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL pool settings."""

    url: str
    min_size: int = 2
    max_size: int = 10
    command_timeout: int = 60

    def __repr__(self) -> str:
        # Keep credentials out of logs
        location = self.url.split("@")[1] if "@" in self.url else self.url
        return f"DatabaseConfig(url={location!r}, min_size={self.min_size}, max_size={self.max_size})"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "DatabaseConfig":
        env = os.environ if env is None else env
        url = _get(env, "DATABASE_URL")
        if not url:
            raise ConfigurationError("DATABASE_URL", "must be set")
        if urlparse(url).scheme not in ("postgres", "postgresql"):
            raise ConfigurationError("DATABASE_URL", "expected a postgresql:// DSN")
        min_size = _get_int(env, "DATABASE_POOL_MIN_SIZE", 2, minimum=0)
        max_size = _get_int(env, "DATABASE_POOL_MAX_SIZE", 10)
        if min_size > max_size:
            raise ConfigurationError(
                "DATABASE_POOL_MIN_SIZE", "must not exceed DATABASE_POOL_MAX_SIZE"
            )
        return cls(url=url, min_size=min_size, max_size=max_size)


@dataclass(frozen=True)
class ServiceConfig:
    """Top-level settings for the users service."""

    telemetry: TelemetryConfig
    database: DatabaseConfig
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    shutdown_grace_seconds: int = 10
    log_filter: str = "info"
    log_structured: bool = True

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        env = os.environ if env is None else env
        return cls(
            telemetry=TelemetryConfig.from_env(env),
            database=DatabaseConfig.from_env(env),
            api_host=_get(env, "API_HOST", "0.0.0.0"),
            api_port=_get_int(env, "API_PORT", 3000),
            shutdown_grace_seconds=_get_int(env, "SHUTDOWN_GRACE_SECONDS", 10, minimum=0),
            log_filter=_get(env, "LOG_FILTER", "info"),
            log_structured=_get_bool(env, "LOG_STRUCTURED", True),
        )


def load_config() -> ServiceConfig:
    """Load the service configuration from the process environment."""
    return ServiceConfig.from_env()
