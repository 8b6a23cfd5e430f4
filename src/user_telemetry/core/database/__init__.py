"""
Database access layer.

Usage:
    from user_telemetry.core.database import DatabaseAdapter

    db = DatabaseAdapter(config.database, telemetry.tracer)
    await db.connect()
    rows = await db.fetch("SELECT * FROM users")
"""

from .adapter import DatabaseAdapter, MIGRATIONS_DIR

__all__ = [
    "DatabaseAdapter",
    "MIGRATIONS_DIR",
]
