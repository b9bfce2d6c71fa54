"""Flow instance repository with version-checked state writes."""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.application.dtos.flow_engine import FlowInstanceCreate, FlowInstanceResult
from claimflow.domain.entities.flow_instance import FlowInstanceEntity
from claimflow.domain.enums import FlowInstanceStatus
from claimflow.domain.exceptions import FlowInstanceConflictException
from claimflow.infrastructure.persistence.models.flow_instance import FlowInstance
from claimflow.infrastructure.persistence.repositories.base import BaseRepository
from claimflow.shared.utils.datetime import utc_now

_OPEN_STATUSES = (FlowInstanceStatus.ACTIVE.value, FlowInstanceStatus.PAUSED.value)


def _instance_to_result(i: FlowInstance) -> FlowInstanceResult:
    """Map FlowInstance ORM to FlowInstanceResult."""
    return FlowInstanceResult(
        id=i.id,
        tenant_id=i.tenant_id,
        claim_id=i.claim_id,
        flow_definition_id=i.flow_definition_id,
        status=i.status,
        current_phase_index=i.current_phase_index,
        current_phase_id=i.current_phase_id,
        current_movement_key=i.current_movement_key,
        completed_movement_keys=list(i.completed_movement_keys or []),
        dynamic_movements=[dict(m) for m in (i.dynamic_movements or [])],
        context=dict(i.context or {}),
        version=i.version,
        started_at=i.started_at,
        completed_at=i.completed_at,
        created_at=i.created_at,
        updated_at=i.updated_at,
    )


class FlowInstanceRepository(BaseRepository[FlowInstance]):
    """Flow instance repository. Implements IFlowInstanceRepository.

    Reads use populate_existing so a reload inside the same session sees the
    latest row instead of the identity-map copy.
    """

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, FlowInstance)

    async def get_by_id_and_tenant(
        self, instance_id: str, tenant_id: str
    ) -> FlowInstanceResult | None:
        result = await self.db.execute(
            select(FlowInstance)
            .where(FlowInstance.id == instance_id, FlowInstance.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _instance_to_result(row) if row else None

    async def get_current_for_claim(
        self, tenant_id: str, claim_id: str
    ) -> FlowInstanceResult | None:
        open_instances = await self.list_open_for_claim(tenant_id, claim_id)
        return open_instances[0] if open_instances else None

    async def list_for_claim(self, tenant_id: str, claim_id: str) -> list[FlowInstanceResult]:
        result = await self.db.execute(
            select(FlowInstance)
            .where(FlowInstance.tenant_id == tenant_id, FlowInstance.claim_id == claim_id)
            .order_by(FlowInstance.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return [_instance_to_result(i) for i in result.scalars().all()]

    async def list_open_for_claim(
        self, tenant_id: str, claim_id: str
    ) -> list[FlowInstanceResult]:
        result = await self.db.execute(
            select(FlowInstance)
            .where(
                FlowInstance.tenant_id == tenant_id,
                FlowInstance.claim_id == claim_id,
                FlowInstance.status.in_(_OPEN_STATUSES),
            )
            .order_by(FlowInstance.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return [_instance_to_result(i) for i in result.scalars().all()]

    async def count_for_definition(self, definition_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(FlowInstance)
            .where(FlowInstance.flow_definition_id == definition_id)
        )
        return int(result.scalar_one())

    async def create(self, tenant_id: str, data: FlowInstanceCreate) -> FlowInstanceResult:
        row = FlowInstance(
            tenant_id=tenant_id,
            claim_id=data.claim_id,
            flow_definition_id=data.flow_definition_id,
            status=FlowInstanceStatus.ACTIVE.value,
            current_phase_index=data.current_phase_index,
            current_phase_id=data.current_phase_id,
            completed_movement_keys=[],
            dynamic_movements=[],
            context=data.context,
            version=1,
            started_at=utc_now(),
        )
        row = await self._add(row)
        return _instance_to_result(row)

    async def save_state(
        self, entity: FlowInstanceEntity, expected_version: int
    ) -> FlowInstanceResult:
        """UPDATE ... WHERE id = :id AND version = :expected, bumping version."""
        result = await self.db.execute(
            update(FlowInstance)
            .where(
                FlowInstance.id == entity.id,
                FlowInstance.tenant_id == entity.tenant_id,
                FlowInstance.version == expected_version,
            )
            .values(
                status=entity.status.value,
                current_phase_index=entity.current_phase_index,
                current_phase_id=entity.current_phase_id,
                current_movement_key=entity.current_movement_key,
                completed_movement_keys=sorted(entity.completed_movement_keys),
                dynamic_movements=entity.dynamic_movements,
                context=entity.context,
                completed_at=entity.completed_at,
                version=FlowInstance.version + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise FlowInstanceConflictException(entity.id, expected_version)
        saved = await self.get_by_id_and_tenant(entity.id, entity.tenant_id)
        if saved is None:
            raise FlowInstanceConflictException(entity.id, expected_version)
        return saved
