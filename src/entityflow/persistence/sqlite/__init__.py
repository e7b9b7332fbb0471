"""SQLite persistence implementation."""

from .storage import SQLiteStorageProvider, create_sqlite_storage

__all__ = ["SQLiteStorageProvider", "create_sqlite_storage"]
