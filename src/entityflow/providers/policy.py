"""Authorization and retry/rate-limit policies.

Policies are consulted by callers around the orchestration service (the CLI
does so before ``execute``); the transition executor never sees them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

from entityflow.domain import Command
from entityflow.exceptions import PolicyError


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Advisory retry descriptor; exponential backoff from ``backoff_base`` seconds."""

    max_attempts: int = 3
    backoff_base: float = 0.1

    def delay(self, attempt: int) -> float:
        return self.backoff_base * (2 ** max(attempt - 1, 0))


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    tokens_per_second: float = 100.0


class PolicyProvider(Protocol):
    def can_execute(self, actor: str | None, entity_type: str, event: str) -> bool: ...

    def retry_policy(self, event: str) -> RetryPolicy: ...

    def rate_limit_policy(self, event: str) -> RateLimitPolicy: ...


class AllowAllPolicy(PolicyProvider):
    """Default policy: every actor may fire every event."""

    def can_execute(self, actor: str | None, entity_type: str, event: str) -> bool:
        return True

    def retry_policy(self, event: str) -> RetryPolicy:
        return RetryPolicy()

    def rate_limit_policy(self, event: str) -> RateLimitPolicy:
        return RateLimitPolicy()


@dataclass
class StaticPolicy(PolicyProvider):
    """Allow-list keyed by ``(entity_type, event)``.

    Pairs without a rule are open to everyone; ``"*"`` in a rule admits any
    actor, including anonymous ones.
    """

    rules: Mapping[tuple[str, str], frozenset[str]] = field(default_factory=dict)
    retries: Mapping[str, RetryPolicy] = field(default_factory=dict)

    def can_execute(self, actor: str | None, entity_type: str, event: str) -> bool:
        allowed = self.rules.get((entity_type, event))
        if allowed is None or "*" in allowed:
            return True
        return actor is not None and actor in allowed

    def retry_policy(self, event: str) -> RetryPolicy:
        return self.retries.get(event, RetryPolicy())

    def rate_limit_policy(self, event: str) -> RateLimitPolicy:
        return RateLimitPolicy()


def authorize(policy: PolicyProvider, command: Command) -> None:
    """Raise :class:`PolicyError` unless ``policy`` admits ``command``."""

    if not policy.can_execute(command.actor, command.entity_type, command.event):
        who = command.actor or "anonymous"
        msg = f"{who} may not fire {command.event} on {command.entity_type}"
        raise PolicyError(
            msg,
            actor=command.actor,
            entity_type=command.entity_type,
            event=command.event,
        )


__all__ = [
    "AllowAllPolicy",
    "PolicyProvider",
    "RateLimitPolicy",
    "RetryPolicy",
    "StaticPolicy",
    "authorize",
]
