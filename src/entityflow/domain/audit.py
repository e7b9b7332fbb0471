"""Audit trail models."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Annotated, Any

from pydantic import Field, field_validator

from .base import DomainModel, coerce_utc
from .enums import AuditResult


class AuditEntry(DomainModel):
    """Immutable record of one attempted transition.

    ``to_state`` is only set for successful transitions and ``action`` names the
    transition action that ran, which keeps the trail replayable against the
    specification's (pure) actions.
    """

    id: str
    timestamp: datetime
    entity_type: str
    entity_id: str
    event: str
    from_state: str
    to_state: str | None = None
    actor: str | None = None
    data: dict[str, Any] | None = None
    action: str | None = None
    result: AuditResult
    error: str | None = None
    duration_ms: Annotated[float, Field(ge=0.0)] = 0.0

    @field_validator("timestamp", mode="before")
    @classmethod
    def ensure_timezone(cls, value: datetime | str) -> datetime | None:
        return coerce_utc(value)


def newest_first(
    entries: Iterable[AuditEntry],
    *,
    limit: int | None = None,
    offset: int | None = None,
) -> Sequence[AuditEntry]:
    """Order entries newest first and apply ``offset``/``limit``."""

    # sorted() is stable, so entries sharing a timestamp keep reverse insertion order
    ordered = sorted(reversed(list(entries)), key=lambda entry: entry.timestamp, reverse=True)
    start = offset or 0
    end = None if limit is None else start + limit
    return ordered[start:end]


__all__ = ["AuditEntry", "newest_first"]
