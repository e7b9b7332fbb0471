"""In-memory storage provider, used for unit testing and ephemeral runs."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Sequence
from copy import deepcopy
from dataclasses import dataclass, field
from typing import TypeVar

from entityflow.domain import AuditEntry, EntityState, QueryFilter, newest_first
from entityflow.persistence.errors import NotFoundError, ensure_next_version
from entityflow.persistence.interfaces import StorageProvider

T = TypeVar("T")

_Key = tuple[str, str]


def _copy(value: T) -> T:
    return deepcopy(value)


@dataclass
class InMemoryStorageProvider(StorageProvider):
    backend_name: str = "memory"
    _states: dict[_Key, EntityState] = field(default_factory=dict)
    _audits: dict[_Key, list[AuditEntry]] = field(default_factory=lambda: defaultdict(list))
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def save(
        self,
        entity_type: str,
        entity_id: str,
        state: EntityState,
        audit: AuditEntry,
    ) -> None:
        key = (entity_type, entity_id)
        async with self._lock:
            current = self._states.get(key)
            ensure_next_version(
                self.backend_name,
                None if current is None else current.version,
                state.version,
            )
            self._states[key] = _copy(state)
            self._audits[key].append(_copy(audit))

    async def load(self, entity_type: str, entity_id: str) -> EntityState:
        state = self._states.get((entity_type, entity_id))
        if state is None:
            raise NotFoundError(self.backend_name, entity_type, entity_id)
        return _copy(state)

    async def query(
        self,
        entity_type: str,
        filter: QueryFilter | None = None,
    ) -> Sequence[EntityState]:
        criteria = filter or QueryFilter()
        candidates = [
            state for (kind, _), state in self._states.items() if kind == entity_type
        ]
        return [_copy(state) for state in criteria.apply(candidates)]

    async def get_history(
        self,
        entity_type: str,
        entity_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Sequence[AuditEntry]:
        entries = self._audits.get((entity_type, entity_id), [])
        return [_copy(entry) for entry in newest_first(entries, limit=limit, offset=offset)]


__all__ = ["InMemoryStorageProvider"]
