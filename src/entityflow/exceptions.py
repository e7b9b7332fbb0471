"""Exceptions raised by the specification, machine and orchestration layers."""

from __future__ import annotations

from collections.abc import Sequence


class EntityFlowError(RuntimeError):
    """Base class for all entityflow failures."""


class SpecError(EntityFlowError):
    """Raised when a specification is structurally invalid."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class SpecAlreadyRegisteredError(SpecError):
    """Raised when a specification id is registered twice without override."""

    def __init__(self, spec_id: str) -> None:
        super().__init__(f"Specification {spec_id!r} is already registered")
        self.spec_id = spec_id


class SpecNotFoundError(EntityFlowError):
    """Raised when no specification is registered for an entity type."""

    def __init__(self, entity_type: str, available: Sequence[str] = ()) -> None:
        msg = f"No specification registered for entity type {entity_type!r}"
        if available:
            msg += f"; available: {', '.join(available)}"
        super().__init__(msg)
        self.entity_type = entity_type
        self.available = tuple(available)


class InvalidStateError(EntityFlowError):
    """Raised when a state name is not declared by the specification."""

    def __init__(self, state: str, valid_states: Sequence[str] = ()) -> None:
        super().__init__(f"Unknown state {state!r}")
        self.state = state
        self.valid_states = tuple(valid_states)


class TransitionError(EntityFlowError):
    """Base class for failures while executing a single transition."""


class TransitionNotAllowedError(TransitionError):
    """Raised when the current state has no transition for the event."""

    def __init__(self, from_state: str, event: str, available: Sequence[str]) -> None:
        msg = f"Event {event!r} is not allowed from state {from_state!r}"
        if available:
            msg += f"; available events: {', '.join(available)}"
        super().__init__(msg)
        self.from_state = from_state
        self.event = event
        self.available = list(available)


class GuardNotFoundError(TransitionError):
    """Raised when a transition references an undefined guard."""

    def __init__(self, guard: str) -> None:
        super().__init__(f"Guard {guard!r} is not defined")
        self.guard = guard


class ActionNotFoundError(TransitionError):
    """Raised when a state or transition references an undefined action."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Action {action!r} is not defined")
        self.action = action


class GuardFailedError(TransitionError):
    """Raised when a guard evaluates to false and blocks the transition."""

    def __init__(self, guard: str, reason: str | None = None) -> None:
        reason = reason or f"Guard {guard!r} evaluated to false"
        super().__init__(reason)
        self.guard = guard
        self.reason = reason


class ContextValidationError(TransitionError):
    """Raised when the post-action context does not satisfy the context schema."""

    def __init__(self, reason: str, cause: Exception | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.cause = cause


class PolicyError(EntityFlowError):
    """Raised by policy providers when a command is not authorized."""

    def __init__(
        self,
        reason: str,
        *,
        actor: str | None = None,
        entity_type: str | None = None,
        event: str | None = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.actor = actor
        self.entity_type = entity_type
        self.event = event


__all__ = [
    "ActionNotFoundError",
    "ContextValidationError",
    "EntityFlowError",
    "GuardFailedError",
    "GuardNotFoundError",
    "InvalidStateError",
    "PolicyError",
    "SpecAlreadyRegisteredError",
    "SpecError",
    "SpecNotFoundError",
    "TransitionError",
    "TransitionNotAllowedError",
]
