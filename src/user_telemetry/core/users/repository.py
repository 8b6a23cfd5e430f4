"""
User Repository

Data access for the users table. Each query runs inside a ``db.query``
span; mapping rows to models runs inside ``result.map`` /
``result.build``. Failures keep the driver error on the query span and
surface to the caller as DataAccessError with the failed operation.
"""

import logging
from typing import List, Optional
from uuid import UUID, uuid4

from opentelemetry import trace

from ..database import DatabaseAdapter
from ..errors import DataAccessError
from ..observability.tracing import create_span
from .models import CreateUserRequest, User

logger = logging.getLogger(__name__)


def _query_attributes(statement: str) -> dict:
    return {"db.system": "postgresql", "db.statement": statement}


class UserRepository:
    """Traced CRUD operations on users."""

    def __init__(self, database: DatabaseAdapter, tracer: trace.Tracer):
        self._db = database
        self._tracer = tracer

    async def list_users(self) -> List[User]:
        try:
            with create_span(self._tracer, "db.query", _query_attributes("SELECT users")):
                rows = await self._db.fetch("SELECT id, first_name, last_name FROM users")
        except DataAccessError as e:
            raise DataAccessError("Failed to fetch users") from e

        with create_span(self._tracer, "result.map", {"db.row_count": len(rows)}):
            return [User(**row) for row in rows]

    async def get_user(self, user_id: UUID) -> Optional[User]:
        try:
            with create_span(self._tracer, "db.query", _query_attributes("SELECT user BY id")):
                row = await self._db.fetchrow(
                    "SELECT id, first_name, last_name FROM users WHERE id = $1",
                    user_id
                )
        except DataAccessError as e:
            raise DataAccessError("Failed to fetch user") from e

        with create_span(self._tracer, "result.build", {"db.found": row is not None}):
            if row is None:
                return None
            return User(**row)

    async def create_user(self, body: CreateUserRequest) -> User:
        user_id = uuid4()

        try:
            with create_span(self._tracer, "db.query", _query_attributes("INSERT user")):
                await self._db.execute(
                    "INSERT INTO users (id, first_name, last_name) VALUES ($1, $2, $3)",
                    user_id,
                    body.first_name,
                    body.last_name
                )
        except DataAccessError as e:
            raise DataAccessError("Failed to insert user") from e

        with create_span(self._tracer, "result.build"):
            user = User(id=user_id, first_name=body.first_name, last_name=body.last_name)

        logger.info(f"User created: {user.id}")
        return user
