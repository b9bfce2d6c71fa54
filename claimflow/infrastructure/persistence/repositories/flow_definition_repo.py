"""Flow definition repository. Returns application DTOs."""

from __future__ import annotations

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.application.dtos.flow_definition import (
    FlowDefinitionCreate,
    FlowDefinitionResult,
)
from claimflow.domain.exceptions import ResourceNotFoundException
from claimflow.infrastructure.persistence.models.flow_definition import FlowDefinition
from claimflow.infrastructure.persistence.repositories.base import BaseRepository

_UPDATABLE_FIELDS = frozenset(
    {"name", "description", "perils", "property_types", "is_active"}
)


def _definition_to_result(d: FlowDefinition) -> FlowDefinitionResult:
    """Map FlowDefinition ORM to FlowDefinitionResult."""
    return FlowDefinitionResult(
        id=d.id,
        tenant_id=d.tenant_id,
        flow_key=d.flow_key,
        name=d.name,
        description=d.description,
        perils=list(d.perils or []),
        property_types=list(d.property_types or []),
        version=d.version,
        is_active=d.is_active,
        is_system=d.is_system,
        flow_json=dict(d.flow_json or {}),
        created_at=d.created_at,
        updated_at=d.updated_at,
    )


def _visible_to(tenant_id: str):
    return or_(FlowDefinition.tenant_id == tenant_id, FlowDefinition.tenant_id.is_(None))


class FlowDefinitionRepository(BaseRepository[FlowDefinition]):
    """Flow definition repository. Implements IFlowDefinitionRepository.

    Tenant-owned rows are visible to their tenant; system rows
    (tenant_id NULL) are visible to every tenant.
    """

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, FlowDefinition)

    async def get_by_id(self, definition_id: str) -> FlowDefinitionResult | None:
        row = await self._get_row(definition_id)
        return _definition_to_result(row) if row else None

    async def get_visible(
        self, tenant_id: str, definition_id: str
    ) -> FlowDefinitionResult | None:
        result = await self.db.execute(
            select(FlowDefinition).where(
                FlowDefinition.id == definition_id, _visible_to(tenant_id)
            )
        )
        row = result.scalar_one_or_none()
        return _definition_to_result(row) if row else None

    async def list_visible(
        self, tenant_id: str, include_inactive: bool = False
    ) -> list[FlowDefinitionResult]:
        q = select(FlowDefinition).where(_visible_to(tenant_id))
        if not include_inactive:
            q = q.where(FlowDefinition.is_active.is_(True))
        q = q.order_by(FlowDefinition.flow_key.asc(), FlowDefinition.version.desc())
        result = await self.db.execute(q)
        return [_definition_to_result(d) for d in result.scalars().all()]

    async def list_active(self, tenant_id: str) -> list[FlowDefinitionResult]:
        return await self.list_visible(tenant_id, include_inactive=False)

    async def get_latest_version(self, tenant_id: str, flow_key: str) -> int:
        result = await self.db.execute(
            select(func.max(FlowDefinition.version)).where(
                FlowDefinition.flow_key == flow_key, _visible_to(tenant_id)
            )
        )
        return result.scalar_one_or_none() or 0

    async def create(
        self,
        tenant_id: str | None,
        data: FlowDefinitionCreate,
        *,
        is_system: bool = False,
    ) -> FlowDefinitionResult:
        row = FlowDefinition(
            tenant_id=None if is_system else tenant_id,
            flow_key=data.flow_key,
            name=data.name,
            description=data.description,
            perils=list(data.perils),
            property_types=list(data.property_types),
            version=data.version,
            is_active=data.is_active,
            is_system=is_system,
            flow_json=data.flow_json,
        )
        row = await self._add(row)
        return _definition_to_result(row)

    async def update_fields(
        self, definition_id: str, **fields: object
    ) -> FlowDefinitionResult:
        """Update mutable columns; flow_json is never changed in place."""
        row = await self._get_row(definition_id)
        if row is None:
            raise ResourceNotFoundException("flow_definition", definition_id)
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update flow definition fields: {sorted(unknown)}")
        for name, value in fields.items():
            setattr(row, name, value)
        await self.db.flush()
        await self.db.refresh(row)
        return _definition_to_result(row)

    async def delete(self, definition_id: str) -> bool:
        row = await self._get_row(definition_id)
        if row is None:
            return False
        await self._delete_row(row)
        return True
