"""Collaborator providers consumed by the orchestration layer."""

from .compute import ComputeProvider, DeterministicComputeProvider, SystemComputeProvider
from .policy import (
    AllowAllPolicy,
    PolicyProvider,
    RateLimitPolicy,
    RetryPolicy,
    StaticPolicy,
    authorize,
)

__all__ = [
    "AllowAllPolicy",
    "ComputeProvider",
    "DeterministicComputeProvider",
    "PolicyProvider",
    "RateLimitPolicy",
    "RetryPolicy",
    "StaticPolicy",
    "SystemComputeProvider",
    "authorize",
]
