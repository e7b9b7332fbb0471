"""Domain models for entityflow."""

from .audit import AuditEntry, newest_first
from .base import DomainModel
from .entity import Command, EntityState, QueryFilter, TransitionCheck, TransitionResult
from .enums import AuditResult, StorageBackend, StorageOperation
from .types import Context, ContextView

__all__ = [
    "AuditEntry",
    "AuditResult",
    "Command",
    "Context",
    "ContextView",
    "DomainModel",
    "EntityState",
    "QueryFilter",
    "StorageBackend",
    "StorageOperation",
    "TransitionCheck",
    "TransitionResult",
    "newest_first",
]
