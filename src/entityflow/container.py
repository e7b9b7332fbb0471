"""Service container wiring application components."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from entityflow.config import AppSettings
from entityflow.domain import StorageBackend
from entityflow.orchestration import OrchestrationService
from entityflow.persistence import (
    InMemoryStorageProvider,
    JsonFileStorageProvider,
    StorageProvider,
)
from entityflow.persistence.sqlite import create_sqlite_storage
from entityflow.providers import (
    AllowAllPolicy,
    ComputeProvider,
    PolicyProvider,
    SystemComputeProvider,
)
from entityflow.spec import Specification, SpecRegistry
from entityflow.specs import BUILTIN_SPECS

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ServiceContainer:
    """Aggregates constructed services with shared configuration."""

    settings: AppSettings
    spec_registry: SpecRegistry
    storage: StorageProvider
    compute: ComputeProvider
    policy: PolicyProvider
    orchestration: OrchestrationService


def _ensure_sqlite_directory(database_url: str) -> None:
    if not database_url.startswith("sqlite"):
        return
    try:
        _, path = database_url.split(":///", maxsplit=1)
    except ValueError:
        return
    db_path = Path(path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)


def build_storage(settings: AppSettings) -> StorageProvider:
    if settings.storage_backend is StorageBackend.MEMORY:
        return InMemoryStorageProvider()
    if settings.storage_backend is StorageBackend.JSON:
        data_root = settings.data_root.expanduser().resolve()
        data_root.mkdir(parents=True, exist_ok=True)
        return JsonFileStorageProvider(data_root)
    _ensure_sqlite_directory(settings.database_url)
    return create_sqlite_storage(settings.database_url)


def build_container(
    settings: AppSettings | None = None,
    *,
    specs: Iterable[Specification] = BUILTIN_SPECS,
    policy: PolicyProvider | None = None,
) -> ServiceContainer:
    """Construct the primary service container.

    The registry is populated with ``specs`` and frozen before the
    orchestration service is built.
    """

    resolved_settings = settings or AppSettings.from_env()
    registry = SpecRegistry()
    registry.register_all(specs, override=resolved_settings.allow_spec_override)
    registry.freeze()
    logger.debug("Registered specifications: %s", ", ".join(registry.ids()))

    storage = build_storage(resolved_settings)
    compute = SystemComputeProvider()
    orchestration = OrchestrationService(registry, storage, compute)

    return ServiceContainer(
        settings=resolved_settings,
        spec_registry=registry,
        storage=storage,
        compute=compute,
        policy=policy or AllowAllPolicy(),
        orchestration=orchestration,
    )


__all__ = ["ServiceContainer", "build_container", "build_storage"]
