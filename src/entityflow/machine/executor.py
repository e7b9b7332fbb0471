"""Pure transition execution against a single entity state.

The executor reads only its arguments and never touches storage. Steps run in
a fixed order and the first failure wins:

1. the current state must be declared by the specification
2. the event must be an outgoing edge of the current state
3. the edge is normalized to a :class:`Transition`
4. command data is shallow-merged over the stored context
5. the guard, if any, sees the merged context (never action output)
6. exit action of the current state
7. transition action
8. entry action of the target state
9. the final context is decoded with the context schema; the decoded values
   are what the result carries
10. a :class:`TransitionResult` is returned
"""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from entityflow.domain import Context, EntityState, TransitionCheck, TransitionResult
from entityflow.exceptions import (
    ActionNotFoundError,
    ContextValidationError,
    GuardFailedError,
    GuardNotFoundError,
    InvalidStateError,
    TransitionError,
    TransitionNotAllowedError,
)
from entityflow.spec import Specification, StateDefinition, Transition, normalize_transition
from entityflow.utils import utc_now


@dataclass(frozen=True, slots=True)
class _GuardedTransition:
    source: StateDefinition
    transition: Transition
    context: Context


def merge_context(context: Mapping[str, Any], data: Mapping[str, Any] | None) -> Context:
    """Shallow merge: top-level keys in ``data`` replace those in ``context``."""

    merged = dict(context)
    if data:
        merged.update(data)
    return deepcopy(merged)


def _resolve_and_guard(
    spec: Specification,
    state: EntityState,
    event: str,
    data: Mapping[str, Any] | None,
) -> _GuardedTransition:
    source = spec.states.get(state.state)
    if source is None:
        raise InvalidStateError(state.state, spec.state_names)

    definition = source.on.get(event)
    if definition is None:
        raise TransitionNotAllowedError(state.state, event, list(source.on))
    transition = normalize_transition(definition)

    context = merge_context(state.context, data)

    if transition.guard is not None:
        guard = spec.guards.get(transition.guard)
        if guard is None:
            raise GuardNotFoundError(transition.guard)
        if not guard(MappingProxyType(context)):
            raise GuardFailedError(transition.guard)

    return _GuardedTransition(source=source, transition=transition, context=context)


def _apply_action(spec: Specification, name: str, context: Context) -> Context:
    action = spec.actions.get(name)
    if action is None:
        raise ActionNotFoundError(name)
    return action(context)


def execute_command(
    spec: Specification,
    state: EntityState,
    event: str,
    data: Mapping[str, Any] | None = None,
    *,
    timestamp: datetime | None = None,
) -> TransitionResult:
    """Apply ``event`` to ``state`` and return the resulting transition."""

    guarded = _resolve_and_guard(spec, state, event, data)
    transition = guarded.transition
    context = guarded.context

    if guarded.source.exit is not None:
        context = _apply_action(spec, guarded.source.exit, context)
    if transition.action is not None:
        context = _apply_action(spec, transition.action, context)
    target = spec.states.get(transition.target)
    if target is None:
        raise InvalidStateError(transition.target, spec.state_names)
    if target.entry is not None:
        context = _apply_action(spec, target.entry, context)

    if not isinstance(context, Mapping):
        msg = f"Actions must return a mapping, got {type(context).__name__}"
        raise ContextValidationError(msg)
    new_context = dict(context)
    if spec.context_schema is not None:
        try:
            validated = spec.context_schema.model_validate(new_context)
        except ValidationError as exc:
            msg = (
                f"Context validation failed after {state.state!r} --{event}--> "
                f"{transition.target!r}: {exc.error_count()} error(s)"
            )
            raise ContextValidationError(msg, exc) from exc
        # Persist the decoded values, keeping only the keys that were supplied
        new_context = validated.model_dump(mode="json", exclude_unset=True)

    return TransitionResult(
        from_state=state.state,
        to_state=transition.target,
        event=event,
        old_context=state.context,
        new_context=new_context,
        timestamp=timestamp or utc_now(),
    )


def check_transition(
    spec: Specification,
    state: EntityState,
    event: str,
    data: Mapping[str, Any] | None = None,
) -> TransitionCheck:
    """Dry run of lookup and guard evaluation; nothing is executed or persisted."""

    try:
        guarded = _resolve_and_guard(spec, state, event, data)
    except (InvalidStateError, TransitionError) as exc:
        return TransitionCheck(allowed=False, reason=str(exc))
    return TransitionCheck(allowed=True, target=guarded.transition.target)


__all__ = ["check_transition", "execute_command", "merge_context"]
