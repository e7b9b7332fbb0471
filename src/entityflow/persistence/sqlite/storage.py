"""Async SQLite storage provider."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from entityflow.domain import AuditEntry, EntityState, QueryFilter, StorageOperation
from entityflow.persistence.errors import ConcurrencyError, NotFoundError, StorageError
from entityflow.persistence.interfaces import StorageProvider

from .migrations import apply_migrations
from .models import AuditEntryRecord, EntityStateRecord

_migration_lock = asyncio.Lock()
_migrated_urls: set[str] = set()


async def _ensure_migrated(engine: AsyncEngine, database_url: str) -> None:
    async with _migration_lock:
        if database_url in _migrated_urls:
            return
        await apply_migrations(engine)
        _migrated_urls.add(database_url)


def _state_record(entity_type: str, entity_id: str, state: EntityState) -> EntityStateRecord:
    return EntityStateRecord(
        entity_type=entity_type,
        entity_id=entity_id,
        state=state.state,
        version=state.version,
        created_at=state.created_at,
        updated_at=state.updated_at,
        payload=state.model_dump(mode="json"),
    )


def _audit_record(audit: AuditEntry) -> AuditEntryRecord:
    return AuditEntryRecord(
        id=audit.id,
        entity_type=audit.entity_type,
        entity_id=audit.entity_id,
        event=audit.event,
        result=audit.result.value,
        timestamp=audit.timestamp,
        payload=audit.model_dump(mode="json"),
    )


class SQLiteStorageProvider(StorageProvider):
    """Stores entity snapshots and audit entries in two tables.

    A save inserts the audit row and either inserts the first snapshot or
    updates the existing one with a compare-and-swap on ``version``, all in a
    single transaction.
    """

    backend_name = "sqlite"

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
        database_url: str,
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory
        self._database_url = database_url

    def _error(self, operation: StorageOperation, exc: SQLAlchemyError) -> StorageError:
        return StorageError(self.backend_name, operation, f"{type(exc).__name__}: {exc}")

    async def save(
        self,
        entity_type: str,
        entity_id: str,
        state: EntityState,
        audit: AuditEntry,
    ) -> None:
        await _ensure_migrated(self._engine, self._database_url)
        expected = state.version - 1
        try:
            async with self._session_factory() as session, session.begin():
                if expected == 0:
                    existing = await session.get(EntityStateRecord, (entity_type, entity_id))
                    if existing is not None:
                        raise ConcurrencyError(self.backend_name, expected, existing.version)
                    session.add(_state_record(entity_type, entity_id, state))
                else:
                    result = await session.execute(
                        update(EntityStateRecord)
                        .where(
                            EntityStateRecord.entity_type == entity_type,
                            EntityStateRecord.entity_id == entity_id,
                            EntityStateRecord.version == expected,
                        )
                        .values(
                            state=state.state,
                            version=state.version,
                            updated_at=state.updated_at,
                            payload=state.model_dump(mode="json"),
                        )
                    )
                    if result.rowcount != 1:
                        current = await session.scalar(
                            select(EntityStateRecord.version).where(
                                EntityStateRecord.entity_type == entity_type,
                                EntityStateRecord.entity_id == entity_id,
                            )
                        )
                        raise ConcurrencyError(self.backend_name, expected, current)
                session.add(_audit_record(audit))
        except SQLAlchemyError as exc:
            raise self._error(StorageOperation.SAVE, exc) from exc

    async def load(self, entity_type: str, entity_id: str) -> EntityState:
        await _ensure_migrated(self._engine, self._database_url)
        try:
            async with self._session_factory() as session:
                record = await session.get(EntityStateRecord, (entity_type, entity_id))
                payload = None if record is None else record.payload
        except SQLAlchemyError as exc:
            raise self._error(StorageOperation.LOAD, exc) from exc
        if payload is None:
            raise NotFoundError(self.backend_name, entity_type, entity_id)
        return EntityState.model_validate(payload)

    async def query(
        self,
        entity_type: str,
        filter: QueryFilter | None = None,
    ) -> Sequence[EntityState]:
        await _ensure_migrated(self._engine, self._database_url)
        criteria = filter or QueryFilter()
        stmt = select(EntityStateRecord).where(EntityStateRecord.entity_type == entity_type)
        if criteria.status is not None:
            stmt = stmt.where(EntityStateRecord.state == criteria.status)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                payloads = [record.payload for record in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise self._error(StorageOperation.QUERY, exc) from exc
        return list(criteria.apply(EntityState.model_validate(p) for p in payloads))

    async def get_history(
        self,
        entity_type: str,
        entity_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Sequence[AuditEntry]:
        await _ensure_migrated(self._engine, self._database_url)
        stmt = (
            select(AuditEntryRecord)
            .where(
                AuditEntryRecord.entity_type == entity_type,
                AuditEntryRecord.entity_id == entity_id,
            )
            .order_by(AuditEntryRecord.timestamp.desc(), AuditEntryRecord.sequence.desc())
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                payloads = [record.payload for record in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise self._error(StorageOperation.GET_HISTORY, exc) from exc
        return [AuditEntry.model_validate(payload) for payload in payloads]

    async def dispose(self) -> None:
        await self._engine.dispose()


def create_sqlite_storage(database_url: str) -> SQLiteStorageProvider:
    engine = create_async_engine(database_url, future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return SQLiteStorageProvider(engine, session_factory, database_url)


__all__ = ["SQLiteStorageProvider", "create_sqlite_storage"]
