from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from entityflow.domain import AuditEntry, AuditResult, EntityState, QueryFilter
from entityflow.persistence import (
    ConcurrencyError,
    InMemoryStorageProvider,
    JsonFileStorageProvider,
    NotFoundError,
    StorageError,
    StorageProvider,
)
from entityflow.persistence import json_store
from entityflow.persistence.sqlite import SQLiteStorageProvider, create_sqlite_storage
from entityflow.persistence.sqlite.migrations import MIGRATIONS, apply_migrations

T0 = datetime(2025, 6, 1, 12, 30, 15, 123456, tzinfo=UTC)

BACKENDS = ["memory", "json", "sqlite"]


def _provider(backend: str, tmp_path: Path) -> StorageProvider:
    if backend == "memory":
        return InMemoryStorageProvider()
    if backend == "json":
        return JsonFileStorageProvider(tmp_path / "data")
    return create_sqlite_storage(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")


def _run(provider: StorageProvider, scenario: Callable[[], Awaitable[None]]) -> None:
    async def _wrapped() -> None:
        try:
            await scenario()
        finally:
            if isinstance(provider, SQLiteStorageProvider):
                await provider.dispose()

    asyncio.run(_wrapped())


def _state(entity_id: str, version: int, state: str = "draft", minutes: int = 0) -> EntityState:
    created = T0 + timedelta(minutes=minutes)
    return EntityState(
        id=entity_id,
        entity_type="doc",
        state=state,
        context={"title": entity_id, "tags": ["a", "b"], "meta": {"n": version}},
        version=version,
        created_at=created,
        updated_at=created + timedelta(seconds=version),
    )


def _audit(entity_id: str, seq: int, event: str = "EDIT") -> AuditEntry:
    return AuditEntry(
        id=f"{entity_id}-audit-{seq}",
        timestamp=T0 + timedelta(seconds=seq),
        entity_type="doc",
        entity_id=entity_id,
        event=event,
        from_state="draft",
        to_state="draft",
        actor="writer",
        data={"seq": seq},
        result=AuditResult.SUCCESS,
        duration_ms=1.5,
    )


@pytest.mark.parametrize("backend", BACKENDS)
def test_round_trip_preserves_state_and_timestamps(backend: str, tmp_path: Path) -> None:
    provider = _provider(backend, tmp_path)
    state = _state("d-1", 1)

    async def _scenario() -> None:
        await provider.save("doc", "d-1", state, _audit("d-1", 1))
        loaded = await provider.load("doc", "d-1")
        assert loaded == state
        assert loaded.created_at.tzinfo is not None
        assert loaded.created_at.microsecond == 123456

    _run(provider, _scenario)


@pytest.mark.parametrize("backend", BACKENDS)
def test_missing_entity_raises_not_found(backend: str, tmp_path: Path) -> None:
    provider = _provider(backend, tmp_path)

    async def _scenario() -> None:
        with pytest.raises(NotFoundError) as excinfo:
            await provider.load("doc", "ghost")
        assert excinfo.value.backend == provider.backend_name
        assert excinfo.value.entity_id == "ghost"
        assert await provider.get_history("doc", "ghost") == []

    _run(provider, _scenario)


@pytest.mark.parametrize("backend", BACKENDS)
def test_stale_version_is_rejected(backend: str, tmp_path: Path) -> None:
    provider = _provider(backend, tmp_path)

    async def _scenario() -> None:
        await provider.save("doc", "d-1", _state("d-1", 1), _audit("d-1", 1))
        await provider.save("doc", "d-1", _state("d-1", 2), _audit("d-1", 2))

        with pytest.raises(ConcurrencyError) as excinfo:
            await provider.save("doc", "d-1", _state("d-1", 2), _audit("d-1", 3))
        assert isinstance(excinfo.value, StorageError)
        assert excinfo.value.expected == 1
        assert excinfo.value.actual == 2

        with pytest.raises(ConcurrencyError):
            await provider.save("doc", "d-1", _state("d-1", 1), _audit("d-1", 4))
        with pytest.raises(ConcurrencyError):
            await provider.save("doc", "d-2", _state("d-2", 3), _audit("d-2", 1))

        loaded = await provider.load("doc", "d-1")
        assert loaded.version == 2
        history = await provider.get_history("doc", "d-1")
        assert [entry.id for entry in history] == ["d-1-audit-2", "d-1-audit-1"]

    _run(provider, _scenario)


@pytest.mark.parametrize("backend", BACKENDS)
def test_query_filters_orders_and_pages(backend: str, tmp_path: Path) -> None:
    provider = _provider(backend, tmp_path)

    async def _scenario() -> None:
        await provider.save("doc", "d-3", _state("d-3", 1, "draft", 3), _audit("d-3", 1))
        await provider.save("doc", "d-1", _state("d-1", 1, "draft", 1), _audit("d-1", 1))
        await provider.save("doc", "d-2", _state("d-2", 1, "published", 2), _audit("d-2", 1))
        other = _state("x-1", 1).model_copy(update={"entity_type": "memo"})
        await provider.save("memo", "x-1", other, _audit("x-1", 1))

        everything = await provider.query("doc")
        assert [s.id for s in everything] == ["d-1", "d-2", "d-3"]

        drafts = await provider.query("doc", QueryFilter(status="draft"))
        assert [s.id for s in drafts] == ["d-1", "d-3"]

        recent = await provider.query(
            "doc", QueryFilter(created_after=T0 + timedelta(minutes=2))
        )
        assert [s.id for s in recent] == ["d-2", "d-3"]

        early = await provider.query(
            "doc", QueryFilter(updated_before=T0 + timedelta(minutes=1, seconds=30))
        )
        assert [s.id for s in early] == ["d-1"]

        page = await provider.query("doc", QueryFilter(limit=1, offset=1))
        assert [s.id for s in page] == ["d-2"]

        assert await provider.query("invoice") == []

    _run(provider, _scenario)


@pytest.mark.parametrize("backend", BACKENDS)
def test_history_newest_first_with_limit_and_offset(backend: str, tmp_path: Path) -> None:
    provider = _provider(backend, tmp_path)

    async def _scenario() -> None:
        for version in range(1, 5):
            await provider.save(
                "doc", "d-1", _state("d-1", version), _audit("d-1", version, f"E{version}")
            )
        full = await provider.get_history("doc", "d-1")
        assert [entry.event for entry in full] == ["E4", "E3", "E2", "E1"]
        assert full[0].data == {"seq": 4}
        assert full[0].duration_ms == 1.5

        page = await provider.get_history("doc", "d-1", limit=2, offset=1)
        assert [entry.event for entry in page] == ["E3", "E2"]

        tail = await provider.get_history("doc", "d-1", offset=3)
        assert [entry.event for entry in tail] == ["E1"]

    _run(provider, _scenario)


def test_memory_provider_returns_copies() -> None:
    provider = InMemoryStorageProvider()

    async def _scenario() -> None:
        await provider.save("doc", "d-1", _state("d-1", 1), _audit("d-1", 1))
        loaded = await provider.load("doc", "d-1")
        loaded.context["title"] = "changed"
        again = await provider.load("doc", "d-1")
        assert again.context["title"] == "d-1"

    asyncio.run(_scenario())


def test_json_provider_layout_and_corruption(tmp_path: Path) -> None:
    base = tmp_path / "data"
    provider = JsonFileStorageProvider(base)

    async def _scenario() -> None:
        await provider.save("doc", "a/b", _state("a/b", 1), _audit("a/b", 1))
        path = base / "doc" / "a%2Fb.json"
        assert path.exists()
        assert list(path.parent.glob("*.tmp")) == []

        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError) as excinfo:
            await provider.load("doc", "a/b")
        assert "Corrupt document" in str(excinfo.value)

    asyncio.run(_scenario())


def test_sqlite_provider_survives_reconnect(tmp_path: Path) -> None:
    url = f"sqlite+aiosqlite:///{tmp_path / 'reopen.db'}"

    async def _write() -> None:
        provider = create_sqlite_storage(url)
        try:
            await provider.save("doc", "d-1", _state("d-1", 1), _audit("d-1", 1))
        finally:
            await provider.dispose()

    async def _read() -> EntityState:
        provider = create_sqlite_storage(url)
        try:
            return await provider.load("doc", "d-1")
        finally:
            await provider.dispose()

    asyncio.run(_write())
    assert asyncio.run(_read()) == _state("d-1", 1)


def test_sqlite_migrations_are_idempotent(tmp_path: Path) -> None:
    provider = create_sqlite_storage(f"sqlite+aiosqlite:///{tmp_path / 'migrate.db'}")

    async def _scenario() -> tuple[int, int]:
        try:
            first = await apply_migrations(provider._engine)
            second = await apply_migrations(provider._engine)
        finally:
            await provider.dispose()
        return first, second

    assert asyncio.run(_scenario()) == (len(MIGRATIONS), len(MIGRATIONS))


@pytest.mark.parametrize("entity_type", [".", ".."])
def test_json_provider_rejects_directory_aliases(entity_type: str, tmp_path: Path) -> None:
    base = tmp_path / "data"
    provider = JsonFileStorageProvider(base)
    state = _state("d-1", 1).model_copy(update={"entity_type": entity_type})

    async def _scenario() -> None:
        with pytest.raises(StorageError, match="Invalid entity type"):
            await provider.save(entity_type, "d-1", state, _audit("d-1", 1))
        with pytest.raises(StorageError, match="Invalid entity type"):
            await provider.load(entity_type, "d-1")

    asyncio.run(_scenario())
    assert not (tmp_path / "d-1.json").exists()
    assert not (base / "d-1.json").exists()


def test_json_provider_cleans_up_after_failed_write(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    base = tmp_path / "data"
    provider = JsonFileStorageProvider(base)

    def _failing_replace(src: str, dst: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(json_store.os, "replace", _failing_replace)

    with pytest.raises(StorageError, match="disk full"):
        asyncio.run(provider.save("doc", "d-1", _state("d-1", 1), _audit("d-1", 1)))

    assert list((base / "doc").glob("*.tmp")) == []
    assert not (base / "doc" / "d-1.json").exists()
