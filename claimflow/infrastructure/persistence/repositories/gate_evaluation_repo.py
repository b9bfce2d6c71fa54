"""Gate evaluation audit repository."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.application.dtos.flow_engine import GateEvaluationCreate, GateEvaluationResult
from claimflow.infrastructure.persistence.models.flow_instance import GateEvaluation
from claimflow.infrastructure.persistence.repositories.base import BaseRepository


def _evaluation_to_result(g: GateEvaluation) -> GateEvaluationResult:
    return GateEvaluationResult(
        id=g.id,
        tenant_id=g.tenant_id,
        flow_instance_id=g.flow_instance_id,
        gate_id=g.gate_id,
        result=g.result,
        reason=g.reason,
        evaluation_type=g.evaluation_type,
        details=dict(g.details or {}),
        evaluated_at=g.evaluated_at,
    )


class GateEvaluationRepository(BaseRepository[GateEvaluation]):
    """Implements IGateEvaluationRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, GateEvaluation)

    async def create(
        self, tenant_id: str, data: GateEvaluationCreate
    ) -> GateEvaluationResult:
        row = GateEvaluation(
            tenant_id=tenant_id,
            flow_instance_id=data.flow_instance_id,
            gate_id=data.gate_id,
            result=data.result,
            reason=data.reason,
            evaluation_type=data.evaluation_type,
            details=data.details,
        )
        row = await self._add(row)
        return _evaluation_to_result(row)

    async def list_for_instance(
        self, tenant_id: str, flow_instance_id: str
    ) -> list[GateEvaluationResult]:
        result = await self.db.execute(
            select(GateEvaluation)
            .where(
                GateEvaluation.tenant_id == tenant_id,
                GateEvaluation.flow_instance_id == flow_instance_id,
            )
            .order_by(GateEvaluation.evaluated_at.asc())
        )
        return [_evaluation_to_result(g) for g in result.scalars().all()]
