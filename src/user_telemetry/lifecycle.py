"""
Service Lifecycle

Startup order:
    config -> logging -> telemetry provider -> console bridge
    -> database adapter + app -> HTTP listener

Shutdown order:
    stop accepting connections -> drain in-flight requests (bounded by
    SHUTDOWN_GRACE_SECONDS) -> lifespan shutdown (close DB pool)
    -> flush and shut down telemetry -> exit

Telemetry comes up before anything that can emit a span and goes down
after the last request has finished, so no spans are dropped.
"""

import asyncio
import logging
from typing import Optional, Protocol

import uvicorn

from .api.users import create_app
from .core.config import ServiceConfig, load_config
from .core.database import DatabaseAdapter
from .core.errors import ConfigurationError, TelemetryInitError
from .core.observability import configure_logging, init_telemetry, install_bridge
from .core.observability.provider import TelemetryProvider

logger = logging.getLogger(__name__)


class Server(Protocol):
    """What the lifecycle needs from an ASGI server (uvicorn.Server)."""

    started: bool
    should_exit: bool

    async def serve(self) -> None:
        ...


class ServiceLifecycle:
    """
    Runs the server, then shuts telemetry down exactly once.

    ``server.serve()`` returns only after the listener has closed and
    in-flight requests have drained (or the grace period expired).
    """

    def __init__(
        self,
        telemetry: TelemetryProvider,
        server: Server,
        shutdown_timeout_millis: Optional[int] = None
    ):
        self.telemetry = telemetry
        self.server = server
        self.shutdown_timeout_millis = shutdown_timeout_millis

    def request_shutdown(self) -> None:
        """Ask the server to stop accepting connections and drain."""
        logger.info("Shutdown signal received, flushing telemetry...")
        self.server.should_exit = True

    async def run(self) -> bool:
        """
        Serve until shutdown.

        Returns:
            True if the server started successfully
        """
        try:
            await self.server.serve()
        finally:
            logger.info("Listener stopped; shutting down telemetry")
            self.telemetry.shutdown(self.shutdown_timeout_millis)
        return bool(getattr(self.server, "started", True))


def build_server(config: ServiceConfig, app) -> uvicorn.Server:
    """uvicorn server with graceful drain; logging is left to us."""
    return uvicorn.Server(uvicorn.Config(
        app,
        host=config.api_host,
        port=config.api_port,
        timeout_graceful_shutdown=config.shutdown_grace_seconds,
        log_config=None
    ))


def main() -> int:
    """
    Entry point. Returns the process exit status.

    Configuration and telemetry failures are fatal: they are reported
    and the function returns 1 before any listener is bound.
    """
    try:
        config = load_config()
        configure_logging(
            log_filter=config.log_filter,
            structured=config.log_structured,
            service_name=config.telemetry.service_name
        )
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO)
        logger.critical(f"Invalid configuration: {e}")
        return 1

    try:
        telemetry = init_telemetry(config.telemetry)
    except TelemetryInitError as e:
        logger.critical(f"Telemetry initialization failed: {e}")
        return 1

    install_bridge(telemetry, console_spans=config.telemetry.console_spans)

    database = DatabaseAdapter(config.database, telemetry.tracer)
    app = create_app(telemetry, database)
    server = build_server(config, app)

    logger.info(f"Starting server on {config.api_host}:{config.api_port}")
    lifecycle = ServiceLifecycle(
        telemetry,
        server,
        shutdown_timeout_millis=config.telemetry.shutdown_timeout_millis
    )

    try:
        started = asyncio.run(lifecycle.run())
    except KeyboardInterrupt:
        # uvicorn re-raises the captured SIGINT once serving has stopped
        return 0

    if not started:
        logger.critical("Application startup failed")
        return 1
    return 0
