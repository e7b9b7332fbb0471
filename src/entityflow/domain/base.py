"""Base class and validators shared by the domain models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from entityflow.utils import parse_timestamp


class DomainModel(BaseModel):
    """Frozen model that rejects unknown fields and re-validates on assignment."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_assignment=True)


def coerce_utc(value: datetime | str | None) -> datetime | None:
    # Storage backends hand timestamps back as ISO strings
    if value is None:
        return None
    return parse_timestamp(value)
