"""Timestamp helpers shared by the domain models and providers."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already; aware ones are converted."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: datetime | str) -> datetime:
    """Accept a datetime or an ISO 8601 string (``Z`` suffix included) as UTC."""

    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        value = datetime.fromisoformat(text)
    return ensure_utc(value)
