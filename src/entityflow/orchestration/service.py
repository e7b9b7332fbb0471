"""Orchestration service tying specifications, the executor and storage together."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from entityflow.domain import (
    AuditEntry,
    AuditResult,
    Command,
    EntityState,
    QueryFilter,
    TransitionCheck,
    TransitionResult,
)
from entityflow.exceptions import EntityFlowError, InvalidStateError
from entityflow.machine import check_transition, execute_command
from entityflow.persistence import NotFoundError, StorageProvider
from entityflow.providers import ComputeProvider
from entityflow.spec import Specification, SpecRegistry, normalize_transition


class OrchestrationService:
    """Executes commands against entities and persists the outcome with an audit entry.

    The service performs no locking or retries: callers must ensure at most one
    in-flight command per entity, or rely on a storage backend that rejects
    stale versions.
    """

    def __init__(
        self,
        registry: SpecRegistry,
        storage: StorageProvider,
        compute: ComputeProvider,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry
        self._storage = storage
        self._compute = compute
        self._logger = logger or logging.getLogger(__name__)

    def get_spec(self, entity_type: str) -> Specification:
        return self._registry.get(entity_type)

    async def _load_or_initial(
        self,
        spec: Specification,
        entity_type: str,
        entity_id: str,
        now: datetime | None = None,
    ) -> EntityState:
        try:
            return await self._storage.load(entity_type, entity_id)
        except NotFoundError:
            now = now or self._compute.now()
            self._logger.debug(
                "No stored state for %s:%s; starting at %s", entity_type, entity_id, spec.initial
            )
            return EntityState(
                id=entity_id,
                entity_type=entity_type,
                state=spec.initial,
                context={},
                version=0,
                created_at=now,
                updated_at=now,
            )

    async def execute(self, command: Command) -> TransitionResult:
        started = time.perf_counter()
        timestamp = self._compute.now()
        spec = self._registry.get(command.entity_type)
        current = await self._load_or_initial(
            spec, command.entity_type, command.entity_id, timestamp
        )

        try:
            result = execute_command(
                spec,
                current,
                command.event,
                command.data,
                timestamp=timestamp,
            )
        except EntityFlowError as exc:
            self._logger.info(
                "Rejected %s on %s:%s in state %s (%s: %s)",
                command.event,
                command.entity_type,
                command.entity_id,
                current.state,
                type(exc).__name__,
                exc,
            )
            raise

        updated = current.model_copy(
            update={
                "state": result.to_state,
                "context": result.new_context,
                "version": current.version + 1,
                "updated_at": timestamp,
            }
        )
        audit = AuditEntry(
            id=self._compute.uuid(),
            timestamp=timestamp,
            entity_type=command.entity_type,
            entity_id=command.entity_id,
            event=command.event,
            from_state=result.from_state,
            to_state=result.to_state,
            actor=command.actor,
            data=command.data,
            action=self._transition_action(spec, current.state, command.event),
            result=AuditResult.SUCCESS,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        await self._storage.save(command.entity_type, command.entity_id, updated, audit)
        self._logger.info(
            "%s:%s %s --%s--> %s (version %d)",
            command.entity_type,
            command.entity_id,
            result.from_state,
            command.event,
            result.to_state,
            updated.version,
        )
        return result

    @staticmethod
    def _transition_action(spec: Specification, state: str, event: str) -> str | None:
        return normalize_transition(spec.states[state].on[event]).action

    async def query(self, entity_type: str, entity_id: str) -> EntityState:
        spec = self._registry.get(entity_type)
        state = await self._storage.load(entity_type, entity_id)
        if state.state not in spec.states:
            raise InvalidStateError(state.state, spec.state_names)
        return state

    async def list_entities(
        self,
        entity_type: str,
        filter: QueryFilter | None = None,
    ) -> Sequence[EntityState]:
        return await self._storage.query(entity_type, filter)

    async def get_history(
        self,
        entity_type: str,
        entity_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Sequence[AuditEntry]:
        return await self._storage.get_history(entity_type, entity_id, limit, offset)

    async def can_transition(
        self,
        entity_type: str,
        entity_id: str,
        event: str,
        data: Mapping[str, Any] | None = None,
    ) -> TransitionCheck:
        spec = self._registry.get(entity_type)
        current = await self._load_or_initial(spec, entity_type, entity_id)
        return check_transition(spec, current, event, data)


__all__ = ["OrchestrationService"]
