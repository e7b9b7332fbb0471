"""Custom persistence exceptions."""

from __future__ import annotations

from entityflow.domain import StorageOperation
from entityflow.exceptions import EntityFlowError


class StorageError(EntityFlowError):
    """Base class for storage provider failures, tagged by backend and operation."""

    def __init__(
        self,
        backend: str,
        operation: StorageOperation,
        reason: str,
    ) -> None:
        super().__init__(f"[{backend}:{operation}] {reason}")
        self.backend = backend
        self.operation = operation
        self.reason = reason


class NotFoundError(StorageError):
    """Raised when no state is stored for the requested entity."""

    def __init__(self, backend: str, entity_type: str, entity_id: str) -> None:
        super().__init__(
            backend,
            StorageOperation.LOAD,
            f"Entity {entity_type}:{entity_id} not found",
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConcurrencyError(StorageError):
    """Raised when optimistic concurrency fails."""

    def __init__(self, backend: str, expected: int, actual: int | None) -> None:
        stored = "nothing" if actual is None else f"version {actual}"
        super().__init__(
            backend,
            StorageOperation.SAVE,
            f"Stale write: expected to replace version {expected}, found {stored}",
        )
        self.expected = expected
        self.actual = actual


def ensure_next_version(backend: str, stored_version: int | None, new_version: int) -> None:
    """Reject a save unless it advances the stored version by exactly one."""

    expected = new_version - 1
    current = 0 if stored_version is None else stored_version
    if current != expected:
        raise ConcurrencyError(backend, expected, stored_version)


__all__ = ["ConcurrencyError", "NotFoundError", "StorageError", "ensure_next_version"]
