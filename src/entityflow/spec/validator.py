"""Structural and reference-integrity checks for specifications."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from entityflow.exceptions import (
    ActionNotFoundError,
    GuardNotFoundError,
    InvalidStateError,
    SpecError,
)

from .graph import TransitionGraph
from .models import Specification, StateDefinition, Transition

logger = logging.getLogger(__name__)


def validate_spec(spec: Specification) -> tuple[str, ...]:
    """Validate ``spec`` and return the names of states unreachable from ``initial``.

    Checks run in a fixed order and the first violation is raised: id, schema,
    initial state, then every state in declaration order (entry action, exit
    action, then each transition's target, guard and action). Unreachable
    states are only reported, never fatal.
    """

    if not spec.id or not spec.id.strip():
        raise SpecError("Specification must have a non-empty id")
    if spec.context_schema is None:
        msg = f"Specification {spec.id!r} must declare a context schema"
        raise SpecError(msg)
    if spec.initial not in spec.states:
        raise InvalidStateError(spec.initial, spec.state_names)

    for name, definition in spec.states.items():
        _validate_state(spec, name, definition)

    unreachable = TransitionGraph.from_spec(spec).unreachable()
    if unreachable:
        logger.warning(
            "Specification %s has unreachable states: %s", spec.id, ", ".join(unreachable)
        )
    return unreachable


def _validate_state(spec: Specification, name: str, definition: StateDefinition) -> None:
    for action in (definition.entry, definition.exit):
        if action is not None and action not in spec.actions:
            raise ActionNotFoundError(action)
    for event, transition in definition.transitions():
        _validate_transition(spec, name, event, transition)


def _validate_transition(
    spec: Specification, source: str, event: str, transition: Transition
) -> None:
    if transition.target not in spec.states:
        msg = (
            f"Transition {source!r} --{event}--> {transition.target!r}: "
            f"unknown target {transition.target!r}"
        )
        raise SpecError(msg)
    if transition.guard is not None and transition.guard not in spec.guards:
        raise GuardNotFoundError(transition.guard)
    if transition.action is not None and transition.action not in spec.actions:
        raise ActionNotFoundError(transition.action)


def validate_context(spec: Specification, context: Mapping[str, Any]) -> None:
    """Decode ``context`` with the specification's schema."""

    if spec.context_schema is None:
        msg = f"Specification {spec.id!r} has no context schema"
        raise SpecError(msg)
    try:
        spec.context_schema.model_validate(context)
    except ValidationError as exc:
        msg = f"Context validation failed: {exc}"
        raise SpecError(msg) from exc


__all__ = ["validate_context", "validate_spec"]
