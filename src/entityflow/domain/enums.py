"""Enumerations used across the entityflow domain layer."""

from __future__ import annotations

from enum import StrEnum


class AuditResult(StrEnum):
    """Outcome recorded on an audit entry."""

    SUCCESS = "success"
    FAILED = "failed"


class StorageOperation(StrEnum):
    """Storage provider operations, used to tag storage failures."""

    SAVE = "save"
    LOAD = "load"
    QUERY = "query"
    GET_HISTORY = "get_history"


class StorageBackend(StrEnum):
    """Storage backends selectable through configuration."""

    SQLITE = "sqlite"
    JSON = "json"
    MEMORY = "memory"
