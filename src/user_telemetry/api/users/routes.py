"""
User Endpoints

Each handler runs inside the request span opened by TracingMiddleware
and opens its own handler span; repository spans nest below it.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from ...core.observability.provider import TelemetryProvider
from ...core.observability.tracing import add_event_to_span, create_span
from ...core.users import CreateUserRequest, User, UserRepository
from ..shared.dependencies import get_telemetry, get_user_repository
from ..shared.exceptions import NotFoundError

router = APIRouter(tags=["users"])


@router.get("/users", response_model=List[User])
async def get_users(
    telemetry: TelemetryProvider = Depends(get_telemetry),
    repository: UserRepository = Depends(get_user_repository)
):
    """List all users."""
    with create_span(telemetry.tracer, "get_users"):
        return await repository.list_users()


@router.get("/user/{id}", response_model=User)
async def get_user(
    id: UUID,
    telemetry: TelemetryProvider = Depends(get_telemetry),
    repository: UserRepository = Depends(get_user_repository)
):
    """Get a single user by ID."""
    with create_span(telemetry.tracer, "get_user", {"user.id": str(id)}):
        user = await repository.get_user(id)

    # A missing user is not a failed operation; raise outside the span
    if user is None:
        raise NotFoundError("User", str(id))
    return user


@router.post("/user", response_model=User, status_code=201)
async def add_user(
    body: CreateUserRequest,
    telemetry: TelemetryProvider = Depends(get_telemetry),
    repository: UserRepository = Depends(get_user_repository)
):
    """Create a user."""
    with create_span(telemetry.tracer, "add_user", {"user.first_name": body.first_name}):
        user = await repository.create_user(body)
        telemetry.metrics.record_user_created()
        add_event_to_span("user.created", {"user.id": str(user.id)})
    return user
