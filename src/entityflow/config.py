"""Lightweight application configuration loader."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from entityflow.domain import StorageBackend


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", ""}


@dataclass(frozen=True)
class AppSettings:
    """Immutable configuration sourced from environment variables."""

    environment: str = "development"
    storage_backend: StorageBackend = StorageBackend.SQLITE
    database_url: str = "sqlite+aiosqlite:///entityflow.db"
    data_root: Path = Path("data")
    log_level: str = "INFO"
    allow_spec_override: bool = False

    @classmethod
    def from_env(cls) -> AppSettings:
        return cls(
            environment=os.getenv("ENTITYFLOW_ENV", cls.environment),
            storage_backend=StorageBackend(
                os.getenv("ENTITYFLOW_STORAGE_BACKEND", cls.storage_backend.value).lower()
            ),
            database_url=os.getenv("ENTITYFLOW_DATABASE_URL", cls.database_url),
            data_root=Path(os.getenv("ENTITYFLOW_DATA_ROOT", str(cls.data_root))),
            log_level=os.getenv("ENTITYFLOW_LOG_LEVEL", cls.log_level).upper(),
            allow_spec_override=_env_bool("ENTITYFLOW_ALLOW_SPEC_OVERRIDE", False),
        )


__all__ = ["AppSettings"]
