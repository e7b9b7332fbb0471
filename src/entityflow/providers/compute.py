"""Clock and identifier providers."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol
from uuid import uuid4

from entityflow.utils import ensure_utc, utc_now


class ComputeProvider(Protocol):
    """Source of timestamps and identifiers for the orchestration service."""

    def now(self) -> datetime: ...

    def uuid(self) -> str: ...


class SystemComputeProvider(ComputeProvider):
    """Wall clock and random UUID4 identifiers."""

    def now(self) -> datetime:
        return utc_now()

    def uuid(self) -> str:
        return str(uuid4())


class DeterministicComputeProvider(ComputeProvider):
    """Reproducible clock and identifiers for tests and replays.

    Every call to :meth:`now` advances the clock by ``step``; identifiers are
    ``<prefix>-0001``, ``<prefix>-0002``, ...
    """

    def __init__(
        self,
        start: datetime,
        *,
        step: timedelta = timedelta(seconds=1),
        prefix: str = "id",
    ) -> None:
        self._current = ensure_utc(start)
        self._step = step
        self._prefix = prefix
        self._counter = 0

    def now(self) -> datetime:
        value = self._current
        self._current = value + self._step
        return value

    def uuid(self) -> str:
        self._counter += 1
        return f"{self._prefix}-{self._counter:04d}"


__all__ = ["ComputeProvider", "DeterministicComputeProvider", "SystemComputeProvider"]
