"""Orchestration layer exports."""

from .service import OrchestrationService

__all__ = ["OrchestrationService"]
