"""Entity state, command and transition outcome models."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Annotated, Any

from pydantic import Field, field_validator

from .base import DomainModel, coerce_utc


class EntityState(DomainModel):
    """Persisted snapshot of one entity governed by a specification."""

    id: str
    entity_type: str
    state: str
    context: dict[str, Any] = Field(default_factory=dict)
    version: Annotated[int, Field(ge=0)] = 0
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def ensure_timezone(cls, value: datetime | str) -> datetime | None:
        return coerce_utc(value)


class Command(DomainModel):
    """Request to fire ``event`` against the entity ``(entity_type, entity_id)``."""

    entity_type: str
    entity_id: str
    event: str
    data: dict[str, Any] | None = None
    actor: str | None = None


class TransitionResult(DomainModel):
    """Outcome of a successfully executed transition."""

    from_state: str
    to_state: str
    event: str
    old_context: dict[str, Any]
    new_context: dict[str, Any]
    timestamp: datetime

    @field_validator("timestamp", mode="before")
    @classmethod
    def ensure_timezone(cls, value: datetime | str) -> datetime | None:
        return coerce_utc(value)


class TransitionCheck(DomainModel):
    """Dry-run answer to "could this event fire right now?"."""

    allowed: bool
    reason: str | None = None
    target: str | None = None


class QueryFilter(DomainModel):
    """Filters applied when listing entities of one type."""

    status: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    updated_after: datetime | None = None
    updated_before: datetime | None = None
    limit: Annotated[int | None, Field(ge=0)] = None
    offset: Annotated[int, Field(ge=0)] = 0

    @field_validator(
        "created_after", "created_before", "updated_after", "updated_before", mode="before"
    )
    @classmethod
    def ensure_timezone(cls, value: datetime | str | None) -> datetime | None:
        return coerce_utc(value)

    def matches(self, state: EntityState) -> bool:
        if self.status is not None and state.state != self.status:
            return False
        if self.created_after is not None and state.created_at < self.created_after:
            return False
        if self.created_before is not None and state.created_at > self.created_before:
            return False
        if self.updated_after is not None and state.updated_at < self.updated_after:
            return False
        if self.updated_before is not None and state.updated_at > self.updated_before:
            return False
        return True

    def apply(self, states: Iterable[EntityState]) -> Sequence[EntityState]:
        """Filter, order by creation time and paginate."""

        selected = sorted(
            (state for state in states if self.matches(state)),
            key=lambda state: (state.created_at, state.id),
        )
        end = None if self.limit is None else self.offset + self.limit
        return selected[self.offset : end]


__all__ = [
    "Command",
    "EntityState",
    "QueryFilter",
    "TransitionCheck",
    "TransitionResult",
]
