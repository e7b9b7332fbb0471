"""File-based JSON storage provider.

Layout: ``<base_path>/<entity_type>/<entity_id>.json``. Each document holds the
current state, the complete audit trail and the time of the last save.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from urllib.parse import quote

from pydantic import Field, ValidationError

from entityflow.domain import (
    AuditEntry,
    DomainModel,
    EntityState,
    QueryFilter,
    StorageOperation,
    newest_first,
)
from entityflow.persistence.errors import NotFoundError, StorageError, ensure_next_version
from entityflow.persistence.interfaces import StorageProvider
from entityflow.utils import utc_now

_SUFFIX = ".json"
# Path components that would escape or alias the base directory
_RESERVED_NAMES = frozenset({"", ".", ".."})


class EntityDocument(DomainModel):
    """On-disk representation of one entity."""

    state: EntityState
    audit: tuple[AuditEntry, ...] = ()
    saved_at: datetime = Field(default_factory=utc_now)


class JsonFileStorageProvider(StorageProvider):
    backend_name = "json"

    def __init__(self, base_path: Path) -> None:
        self._base_path = base_path
        self._lock = asyncio.Lock()

    def _type_dir(self, entity_type: str, operation: StorageOperation) -> Path:
        if entity_type in _RESERVED_NAMES:
            msg = f"Invalid entity type {entity_type!r}"
            raise StorageError(self.backend_name, operation, msg)
        return self._base_path / quote(entity_type, safe="")

    def _path(self, entity_type: str, entity_id: str, operation: StorageOperation) -> Path:
        return self._type_dir(entity_type, operation) / f"{quote(entity_id, safe='')}{_SUFFIX}"

    def _read(self, path: Path, operation: StorageOperation) -> EntityDocument | None:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            msg = f"Failed to read {path}: {exc}"
            raise StorageError(self.backend_name, operation, msg) from exc
        try:
            return EntityDocument.model_validate_json(raw)
        except ValidationError as exc:
            msg = f"Corrupt document {path}: {exc.error_count()} error(s)"
            raise StorageError(self.backend_name, operation, msg) from exc

    def _write(self, path: Path, document: EntityDocument) -> None:
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(document.model_dump_json(indent=2))
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            msg = f"Failed to write {path}: {exc}"
            raise StorageError(self.backend_name, StorageOperation.SAVE, msg) from exc

    def _save_sync(
        self, entity_type: str, entity_id: str, state: EntityState, audit: AuditEntry
    ) -> None:
        path = self._path(entity_type, entity_id, StorageOperation.SAVE)
        existing = self._read(path, StorageOperation.SAVE)
        ensure_next_version(
            self.backend_name,
            None if existing is None else existing.state.version,
            state.version,
        )
        history = () if existing is None else existing.audit
        self._write(path, EntityDocument(state=state, audit=(*history, audit)))

    def _load_documents(self, entity_type: str) -> list[EntityDocument]:
        directory = self._type_dir(entity_type, StorageOperation.QUERY)
        if not directory.is_dir():
            return []
        documents = []
        for path in sorted(directory.glob(f"*{_SUFFIX}")):
            document = self._read(path, StorageOperation.QUERY)
            if document is not None:
                documents.append(document)
        return documents

    async def save(
        self,
        entity_type: str,
        entity_id: str,
        state: EntityState,
        audit: AuditEntry,
    ) -> None:
        async with self._lock:
            await asyncio.to_thread(self._save_sync, entity_type, entity_id, state, audit)

    async def load(self, entity_type: str, entity_id: str) -> EntityState:
        path = self._path(entity_type, entity_id, StorageOperation.LOAD)
        document = await asyncio.to_thread(self._read, path, StorageOperation.LOAD)
        if document is None:
            raise NotFoundError(self.backend_name, entity_type, entity_id)
        return document.state

    async def query(
        self,
        entity_type: str,
        filter: QueryFilter | None = None,
    ) -> Sequence[EntityState]:
        documents = await asyncio.to_thread(self._load_documents, entity_type)
        criteria = filter or QueryFilter()
        return list(criteria.apply(document.state for document in documents))

    async def get_history(
        self,
        entity_type: str,
        entity_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Sequence[AuditEntry]:
        path = self._path(entity_type, entity_id, StorageOperation.GET_HISTORY)
        document = await asyncio.to_thread(self._read, path, StorageOperation.GET_HISTORY)
        if document is None:
            return []
        return list(newest_first(document.audit, limit=limit, offset=offset))


__all__ = ["EntityDocument", "JsonFileStorageProvider"]
