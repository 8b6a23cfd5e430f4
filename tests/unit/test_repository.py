"""
Tests for the traced user repository.
"""

from uuid import uuid4

import pytest
from opentelemetry.trace import StatusCode

from user_telemetry.core.errors import DataAccessError
from user_telemetry.core.users import CreateUserRequest, User, UserRepository


@pytest.fixture
def repository(telemetry, database):
    return UserRepository(database, telemetry.tracer)


class TestCreateUser:
    """Insert path."""

    async def test_creates_user(self, repository, database):
        user = await repository.create_user(CreateUserRequest(first_name="Ada", last_name="Lovelace"))

        assert isinstance(user, User)
        assert user.first_name == "Ada"
        assert database.users[user.id]["last_name"] == "Lovelace"

    async def test_spans(self, repository, finished_spans):
        await repository.create_user(CreateUserRequest(first_name="Ada", last_name="Lovelace"))

        spans = finished_spans()
        assert [s.name for s in spans] == ["db.query", "result.build"]
        assert spans[0].attributes["db.statement"] == "INSERT user"
        assert spans[0].attributes["db.system"] == "postgresql"


class TestListUsers:
    """Select-all path."""

    async def test_empty(self, repository):
        assert await repository.list_users() == []

    async def test_row_count_on_map_span(self, repository, finished_spans):
        for name in ("Ada", "Grace"):
            await repository.create_user(CreateUserRequest(first_name=name, last_name="X"))

        users = await repository.list_users()

        assert sorted(u.first_name for u in users) == ["Ada", "Grace"]
        query, mapping = finished_spans()[-2:]
        assert query.name == "db.query"
        assert query.attributes["db.statement"] == "SELECT users"
        assert mapping.name == "result.map"
        assert mapping.attributes["db.row_count"] == 2

    async def test_failure(self, repository, database, data_access_failure, finished_spans):
        database.fail_with = data_access_failure

        with pytest.raises(DataAccessError) as exc_info:
            await repository.list_users()

        assert exc_info.value.message == "Failed to fetch users"
        assert exc_info.value.__cause__ is data_access_failure
        assert "connection was closed" in exc_info.value.detail

        [query] = finished_spans()
        assert query.name == "db.query"
        assert query.status.status_code == StatusCode.ERROR
        assert query.attributes["error.type"] == "DataAccessError"


class TestGetUser:
    """Select-by-id path."""

    async def test_found(self, repository, finished_spans):
        created = await repository.create_user(CreateUserRequest(first_name="Ada", last_name="L"))

        found = await repository.get_user(created.id)

        assert found == created
        build = finished_spans()[-1]
        assert build.name == "result.build"
        assert build.attributes["db.found"] is True

    async def test_missing_is_not_an_error(self, repository, finished_spans):
        assert await repository.get_user(uuid4()) is None

        query, build = finished_spans()
        assert query.attributes["db.statement"] == "SELECT user BY id"
        assert query.status.status_code != StatusCode.ERROR
        assert build.attributes["db.found"] is False

    async def test_failure(self, repository, database, data_access_failure):
        database.fail_with = data_access_failure

        with pytest.raises(DataAccessError, match="Failed to fetch user"):
            await repository.get_user(uuid4())
