"""Versioned schema migrations for the entityflow SQLite store.

Applied versions are tracked in ``entityflow_schema_migrations``; each run
applies only the migrations newer than the highest recorded version.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from .models import Base

logger = logging.getLogger(__name__)

Migration = Callable[[AsyncConnection], Awaitable[None]]

_VERSION_TABLE = "entityflow_schema_migrations"


async def _create_tables(conn: AsyncConnection) -> None:
    await conn.run_sync(Base.metadata.create_all)


async def _index_audit_timestamps(conn: AsyncConnection) -> None:
    await conn.execute(
        text(
            "CREATE INDEX IF NOT EXISTS ix_audit_entries_timestamp "
            "ON audit_entries (timestamp, sequence)"
        )
    )


MIGRATIONS: tuple[tuple[int, Migration], ...] = (
    (1, _create_tables),
    (2, _index_audit_timestamps),
)


async def current_version(conn: AsyncConnection) -> int:
    await conn.execute(
        text(f"CREATE TABLE IF NOT EXISTS {_VERSION_TABLE} (version INTEGER PRIMARY KEY)")
    )
    result = await conn.execute(text(f"SELECT MAX(version) FROM {_VERSION_TABLE}"))
    return result.scalar() or 0


async def apply_migrations(engine: AsyncEngine) -> int:
    """Bring the schema up to date and return the resulting version."""

    async with engine.begin() as conn:
        version = await current_version(conn)
        for target, migration in MIGRATIONS:
            if target <= version:
                continue
            logger.info("Applying SQLite migration %d", target)
            await migration(conn)
            await conn.execute(
                text(f"INSERT INTO {_VERSION_TABLE} (version) VALUES (:version)"),
                {"version": target},
            )
            version = target
    return version


__all__ = ["MIGRATIONS", "apply_migrations", "current_version"]
