"""
Request dependencies.

Handles are taken from app.state, where create_app stores the objects
built at startup.
"""

from fastapi import Request

from ...core.database import DatabaseAdapter
from ...core.observability.provider import TelemetryProvider
from ...core.users import UserRepository
from .exceptions import ServiceUnavailableError


async def get_telemetry(request: Request) -> TelemetryProvider:
    """Get the process telemetry provider."""
    return request.app.state.telemetry


async def get_database(request: Request) -> DatabaseAdapter:
    """Get the database adapter; 503 until the pool is connected."""
    database = request.app.state.database
    if not database.connected:
        raise ServiceUnavailableError("Database not initialized")
    return database


async def get_user_repository(request: Request) -> UserRepository:
    """Build a repository bound to this app's database and tracer."""
    database = await get_database(request)
    return UserRepository(database, request.app.state.telemetry.tracer)
