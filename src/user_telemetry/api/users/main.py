"""
Users API
=========

FastAPI application for user records, instrumented with OpenTelemetry.

The telemetry provider and database adapter are built by the caller and
passed in, so the provider is live before anything that emits spans.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ...core.database import DatabaseAdapter
from ...core.observability.provider import TelemetryProvider
from ..shared.middleware import register_error_handlers, TracingMiddleware
from ..shared.routers.health import router as health_router
from .routes import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    database: DatabaseAdapter = app.state.database
    telemetry: TelemetryProvider = app.state.telemetry

    # Startup
    await database.connect()
    await database.run_migrations()
    telemetry.metrics.set_pool_size_source(database.pool_size)
    logger.info("Connected to database and migrations applied")

    yield

    # Shutdown: in-flight requests have drained by now
    telemetry.metrics.set_pool_size_source(None)
    await database.disconnect()


def create_app(telemetry: TelemetryProvider, database: DatabaseAdapter) -> FastAPI:
    """
    Build the users API.

    Args:
        telemetry: Initialized telemetry provider
        database: Database adapter (connected during lifespan startup)
    """
    app = FastAPI(
        title="User Telemetry API",
        description="User records with OpenTelemetry tracing and metrics",
        version=telemetry.config.service_version,
        lifespan=lifespan
    )

    app.state.telemetry = telemetry
    app.state.database = database

    register_error_handlers(app)

    # Wraps every route, including health
    app.add_middleware(TracingMiddleware, telemetry=telemetry)

    app.include_router(health_router)
    app.include_router(users_router)

    return app
