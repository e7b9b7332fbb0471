"""entityflow: declarative entity lifecycle orchestration."""

from .domain import (
    AuditEntry,
    AuditResult,
    Command,
    EntityState,
    QueryFilter,
    TransitionCheck,
    TransitionResult,
)
from .machine import check_transition, execute_command
from .orchestration import OrchestrationService
from .spec import Specification, SpecRegistry, StateDefinition, Transition, validate_spec

__version__ = "0.1.0"

__all__ = [
    "AuditEntry",
    "AuditResult",
    "Command",
    "EntityState",
    "OrchestrationService",
    "QueryFilter",
    "SpecRegistry",
    "Specification",
    "StateDefinition",
    "Transition",
    "TransitionCheck",
    "TransitionResult",
    "check_transition",
    "execute_command",
    "validate_spec",
]
