"""Movement completion and evidence link repositories (append-only)."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.application.dtos.flow_engine import (
    MovementCompletionCreate,
    MovementCompletionResult,
    MovementEvidenceResult,
)
from claimflow.infrastructure.persistence.models.flow_instance import (
    MovementCompletion,
    MovementEvidence,
)
from claimflow.infrastructure.persistence.repositories.base import BaseRepository


def _completion_to_result(c: MovementCompletion) -> MovementCompletionResult:
    return MovementCompletionResult(
        id=c.id,
        tenant_id=c.tenant_id,
        flow_instance_id=c.flow_instance_id,
        claim_id=c.claim_id,
        movement_key=c.movement_key,
        phase_id=c.phase_id,
        movement_id=c.movement_id,
        status=c.status,
        skipped_required=c.skipped_required,
        completed_by=c.completed_by,
        notes=c.notes,
        evidence_data=dict(c.evidence_data or {}),
        completed_at=c.completed_at,
    )


def _evidence_to_result(e: MovementEvidence) -> MovementEvidenceResult:
    return MovementEvidenceResult(
        id=e.id,
        tenant_id=e.tenant_id,
        flow_instance_id=e.flow_instance_id,
        movement_key=e.movement_key,
        evidence_type=e.evidence_type,
        reference_id=e.reference_id,
        evidence_data=dict(e.evidence_data or {}),
        created_by=e.created_by,
        created_at=e.created_at,
    )


class MovementCompletionRepository(BaseRepository[MovementCompletion]):
    """Implements IMovementCompletionRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, MovementCompletion)

    async def create(
        self, tenant_id: str, data: MovementCompletionCreate
    ) -> MovementCompletionResult:
        row = MovementCompletion(
            tenant_id=tenant_id,
            flow_instance_id=data.flow_instance_id,
            claim_id=data.claim_id,
            movement_key=data.movement_key,
            phase_id=data.phase_id,
            movement_id=data.movement_id,
            status=data.status,
            skipped_required=data.skipped_required,
            completed_by=data.completed_by,
            notes=data.notes,
            evidence_data=data.evidence_data,
        )
        row = await self._add(row)
        return _completion_to_result(row)

    async def list_for_instance(
        self, tenant_id: str, flow_instance_id: str
    ) -> list[MovementCompletionResult]:
        result = await self.db.execute(
            select(MovementCompletion)
            .where(
                MovementCompletion.tenant_id == tenant_id,
                MovementCompletion.flow_instance_id == flow_instance_id,
            )
            .order_by(MovementCompletion.completed_at.asc())
        )
        return [_completion_to_result(c) for c in result.scalars().all()]

    async def list_for_movement(
        self, tenant_id: str, flow_instance_id: str, movement_key: str
    ) -> list[MovementCompletionResult]:
        result = await self.db.execute(
            select(MovementCompletion)
            .where(
                MovementCompletion.tenant_id == tenant_id,
                MovementCompletion.flow_instance_id == flow_instance_id,
                MovementCompletion.movement_key == movement_key,
            )
            .order_by(MovementCompletion.completed_at.asc())
        )
        return [_completion_to_result(c) for c in result.scalars().all()]


class MovementEvidenceRepository(BaseRepository[MovementEvidence]):
    """Implements IMovementEvidenceRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, MovementEvidence)

    async def create(
        self,
        tenant_id: str,
        flow_instance_id: str,
        movement_key: str,
        evidence_type: str,
        reference_id: str | None,
        evidence_data: dict[str, Any],
        created_by: str | None,
    ) -> MovementEvidenceResult:
        row = MovementEvidence(
            tenant_id=tenant_id,
            flow_instance_id=flow_instance_id,
            movement_key=movement_key,
            evidence_type=evidence_type,
            reference_id=reference_id,
            evidence_data=evidence_data,
            created_by=created_by,
        )
        row = await self._add(row)
        return _evidence_to_result(row)

    async def list_for_movement(
        self, tenant_id: str, flow_instance_id: str, movement_key: str
    ) -> list[MovementEvidenceResult]:
        result = await self.db.execute(
            select(MovementEvidence)
            .where(
                MovementEvidence.tenant_id == tenant_id,
                MovementEvidence.flow_instance_id == flow_instance_id,
                MovementEvidence.movement_key == movement_key,
            )
            .order_by(MovementEvidence.created_at.asc())
        )
        return [_evidence_to_result(e) for e in result.scalars().all()]

    async def list_for_instance(
        self, tenant_id: str, flow_instance_id: str
    ) -> list[MovementEvidenceResult]:
        result = await self.db.execute(
            select(MovementEvidence)
            .where(
                MovementEvidence.tenant_id == tenant_id,
                MovementEvidence.flow_instance_id == flow_instance_id,
            )
            .order_by(MovementEvidence.created_at.asc())
        )
        return [_evidence_to_result(e) for e in result.scalars().all()]
