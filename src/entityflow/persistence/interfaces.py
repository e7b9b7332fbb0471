"""Persistence layer abstractions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from entityflow.domain import AuditEntry, EntityState, QueryFilter


class StorageProvider(Protocol):
    """Pluggable persistence for entity state and its audit trail.

    ``save`` must store the state and the audit entry atomically. ``load``
    raises :class:`~entityflow.persistence.errors.NotFoundError` when nothing is
    stored; any other failure surfaces as ``StorageError``.
    """

    backend_name: str

    async def save(
        self,
        entity_type: str,
        entity_id: str,
        state: EntityState,
        audit: AuditEntry,
    ) -> None: ...

    async def load(self, entity_type: str, entity_id: str) -> EntityState: ...

    async def query(
        self,
        entity_type: str,
        filter: QueryFilter | None = None,
    ) -> Sequence[EntityState]: ...

    async def get_history(
        self,
        entity_type: str,
        entity_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Sequence[AuditEntry]: ...


__all__ = ["StorageProvider"]
