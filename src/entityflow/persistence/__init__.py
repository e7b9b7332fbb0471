"""Persistence layer: storage contract, errors and bundled backends."""

from .errors import ConcurrencyError, NotFoundError, StorageError, ensure_next_version
from .interfaces import StorageProvider
from .json_store import EntityDocument, JsonFileStorageProvider
from .memory import InMemoryStorageProvider

__all__ = [
    "ConcurrencyError",
    "EntityDocument",
    "InMemoryStorageProvider",
    "JsonFileStorageProvider",
    "NotFoundError",
    "StorageError",
    "StorageProvider",
    "ensure_next_version",
]
