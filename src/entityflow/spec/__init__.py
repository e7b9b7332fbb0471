"""Specification model, validation and registry."""

from .graph import Edge, TransitionGraph
from .models import (
    ActionFn,
    GuardFn,
    Specification,
    StateDefinition,
    Transition,
    TransitionDef,
    normalize_transition,
)
from .registry import SpecRegistry
from .validator import validate_context, validate_spec

__all__ = [
    "ActionFn",
    "Edge",
    "GuardFn",
    "SpecRegistry",
    "Specification",
    "StateDefinition",
    "Transition",
    "TransitionDef",
    "TransitionGraph",
    "normalize_transition",
    "validate_context",
    "validate_spec",
]
