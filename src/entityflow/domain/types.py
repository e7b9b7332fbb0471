"""Shared type aliases for the domain layer."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

Context = dict[str, Any]
ContextView = Mapping[str, Any]

__all__ = ["Context", "ContextView"]
