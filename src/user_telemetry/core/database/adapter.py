"""
Database Adapter

asyncpg connection pool behind a small query interface. Driver errors
are re-raised as DataAccessError so callers never depend on asyncpg
exception types.

Features:
- Connection pooling
- Traced pool setup and migrations (db.connect / db.migrate spans)
- SQL file migrations tracked in schema_migrations
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import asyncpg
from opentelemetry import trace

from ..config import DatabaseConfig
from ..errors import DataAccessError
from ..observability.tracing import create_span

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

# Errors worth translating; anything else is a programming error
_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class DatabaseAdapter:
    """
    PostgreSQL adapter.

    Usage:
        db = DatabaseAdapter(config, tracer)
        await db.connect()

        rows = await db.fetch("SELECT * FROM users WHERE id = $1", user_id)
        await db.execute("INSERT INTO users (id) VALUES ($1)", user_id)

        await db.disconnect()
    """

    def __init__(self, config: DatabaseConfig, tracer: trace.Tracer):
        self.config = config
        self._tracer = tracer
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return

        logger.info(f"Connecting to database: {self.config!r}")

        with create_span(self._tracer, "db.connect", {"db.system": "postgresql"}):
            try:
                self._pool = await asyncpg.create_pool(
                    self.config.url,
                    min_size=self.config.min_size,
                    max_size=self.config.max_size,
                    command_timeout=self.config.command_timeout
                )
            except _DRIVER_ERRORS as e:
                raise DataAccessError("Failed to connect to DB") from e

        logger.info("Connected to PostgreSQL")

    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Disconnected from PostgreSQL")

    def pool_size(self) -> int:
        """Current number of connections held by the pool."""
        if self._pool is None:
            return 0
        return self._pool.get_size()

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise DataAccessError("Database not connected")
        return self._pool

    async def fetch(self, query: str, *args) -> List[Dict[str, Any]]:
        """
        Fetch multiple rows.

        Args:
            query: SQL query with $1, $2, etc. placeholders
            *args: Query parameters

        Returns:
            List of dictionaries representing rows
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
        except _DRIVER_ERRORS as e:
            raise DataAccessError(f"{type(e).__name__}: {e}") from e
        return [dict(row) for row in rows]

    async def fetchrow(self, query: str, *args) -> Optional[Dict[str, Any]]:
        """Fetch a single row."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(query, *args)
        except _DRIVER_ERRORS as e:
            raise DataAccessError(f"{type(e).__name__}: {e}") from e
        return dict(row) if row is not None else None

    async def fetchval(self, query: str, *args) -> Any:
        """Fetch a single value from the first column of the first row."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchval(query, *args)
        except _DRIVER_ERRORS as e:
            raise DataAccessError(f"{type(e).__name__}: {e}") from e

    async def execute(self, query: str, *args) -> str:
        """
        Execute a query (INSERT, UPDATE, DELETE).

        Returns:
            Status string (e.g., "INSERT 0 1")
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.execute(query, *args)
        except _DRIVER_ERRORS as e:
            raise DataAccessError(f"{type(e).__name__}: {e}") from e

    async def run_migrations(self, migrations_dir: Path = MIGRATIONS_DIR) -> List[str]:
        """
        Apply pending SQL migrations in filename order.

        Each file ``NNN_name.sql`` is applied once, in its own
        transaction, and recorded in schema_migrations.

        Returns:
            Versions applied by this call
        """
        pool = self._require_pool()
        applied_now: List[str] = []

        with create_span(self._tracer, "db.migrate", {"db.system": "postgresql"}) as span:
            try:
                async with pool.acquire() as conn:
                    await conn.execute(
                        "CREATE TABLE IF NOT EXISTS schema_migrations ("
                        " version TEXT PRIMARY KEY,"
                        " applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW())"
                    )
                    rows = await conn.fetch("SELECT version FROM schema_migrations")
                    applied = {row["version"] for row in rows}

                    for path in sorted(migrations_dir.glob("*.sql")):
                        version = path.stem.split("_")[0]
                        if version in applied:
                            continue
                        logger.info(f"Running migration {path.stem}")
                        async with conn.transaction():
                            await conn.execute(path.read_text())
                            await conn.execute(
                                "INSERT INTO schema_migrations (version) VALUES ($1)",
                                version
                            )
                        applied_now.append(version)
            except _DRIVER_ERRORS as e:
                raise DataAccessError("Failed to run migrations") from e

            span.set_attribute("db.migrations_applied", len(applied_now))

        if applied_now:
            logger.info(f"Applied {len(applied_now)} migration(s): {', '.join(applied_now)}")
        else:
            logger.info("No pending migrations. Database is up to date.")
        return applied_now
