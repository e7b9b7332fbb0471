"""Transition execution."""

from .executor import check_transition, execute_command, merge_context

__all__ = ["check_transition", "execute_command", "merge_context"]
