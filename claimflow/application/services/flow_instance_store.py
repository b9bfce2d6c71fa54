"""Loads flow instances with their definitions and saves state under optimistic locking."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

from claimflow.application.dtos.flow_engine import FlowInstanceResult
from claimflow.application.interfaces.repositories import (
    IFlowDefinitionRepository,
    IFlowInstanceRepository,
)
from claimflow.application.services.flow_selector import to_definition_entity
from claimflow.domain.entities.flow_definition import FlowDefinitionEntity
from claimflow.domain.entities.flow_instance import FlowInstanceEntity
from claimflow.domain.enums import FlowInstanceStatus
from claimflow.domain.exceptions import FlowInstanceConflictException, ResourceNotFoundException
from claimflow.shared.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Mutation = Callable[[FlowInstanceEntity, FlowDefinitionEntity], Awaitable[T]]


def to_instance_entity(result: FlowInstanceResult) -> FlowInstanceEntity:
    """Map FlowInstanceResult (application DTO) to FlowInstanceEntity (domain entity)."""
    return FlowInstanceEntity(
        id=result.id,
        tenant_id=result.tenant_id,
        claim_id=result.claim_id,
        flow_definition_id=result.flow_definition_id,
        status=FlowInstanceStatus(result.status),
        current_phase_index=result.current_phase_index,
        current_phase_id=result.current_phase_id,
        current_movement_key=result.current_movement_key,
        completed_movement_keys=set(result.completed_movement_keys),
        dynamic_movements=[dict(m) for m in result.dynamic_movements],
        context=dict(result.context),
        version=result.version,
        started_at=result.started_at,
        completed_at=result.completed_at,
        created_at=result.created_at,
        updated_at=result.updated_at,
    )


def _snapshot(entity: FlowInstanceEntity) -> tuple:
    return (
        entity.status,
        entity.current_phase_index,
        entity.current_phase_id,
        entity.current_movement_key,
        frozenset(entity.completed_movement_keys),
        repr(entity.dynamic_movements),
        repr(sorted(entity.context.items())),
        entity.completed_at,
    )


class FlowInstanceStore:
    """Read-modify-write of instance state with a version check and bounded retries.

    ``mutate`` reloads the instance, applies the mutation, and writes it with
    ``WHERE version = expected``. When another writer won the race the whole
    mutation is reapplied on fresh state, up to ``max_attempts`` times.
    """

    def __init__(
        self,
        instance_repo: IFlowInstanceRepository,
        definition_repo: IFlowDefinitionRepository,
        *,
        max_attempts: int = 3,
    ) -> None:
        self.instance_repo = instance_repo
        self.definition_repo = definition_repo
        self.max_attempts = max(1, max_attempts)
        self._definitions: dict[str, FlowDefinitionEntity] = {}

    async def get_definition(self, definition_id: str) -> FlowDefinitionEntity:
        cached = self._definitions.get(definition_id)
        if cached is not None:
            return cached
        result = await self.definition_repo.get_by_id(definition_id)
        if result is None:
            raise ResourceNotFoundException("flow_definition", definition_id)
        entity = to_definition_entity(result)
        self._definitions[definition_id] = entity
        return entity

    async def load(
        self, tenant_id: str, instance_id: str
    ) -> tuple[FlowInstanceEntity, FlowDefinitionEntity]:
        """Return (instance, definition).

        Raises:
            ResourceNotFoundException: Instance not found in tenant.
        """
        result = await self.instance_repo.get_by_id_and_tenant(instance_id, tenant_id)
        if result is None:
            raise ResourceNotFoundException("flow_instance", instance_id)
        return to_instance_entity(result), await self.get_definition(result.flow_definition_id)

    async def mutate(
        self, tenant_id: str, instance_id: str, mutation: Mutation[T]
    ) -> tuple[T, FlowInstanceEntity, FlowDefinitionEntity]:
        """Apply ``mutation`` and persist the result; returns (outcome, saved entity, definition).

        Raises:
            FlowInstanceConflictException: Still conflicting after max_attempts.
        """
        for attempt in range(1, self.max_attempts + 1):
            entity, definition = await self.load(tenant_id, instance_id)
            expected_version = entity.version
            before = _snapshot(entity)
            outcome = await mutation(entity, definition)
            if _snapshot(entity) == before:
                return outcome, entity, definition
            try:
                saved = await self.instance_repo.save_state(entity, expected_version)
            except FlowInstanceConflictException:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "Flow instance %s still conflicting after %d attempts",
                        instance_id,
                        attempt,
                    )
                    raise
                logger.info(
                    "Version conflict on flow instance %s (attempt %d); reapplying",
                    instance_id,
                    attempt,
                )
                continue
            entity.version = saved.version
            entity.updated_at = saved.updated_at
            return outcome, entity, definition
        raise FlowInstanceConflictException(instance_id, -1)
