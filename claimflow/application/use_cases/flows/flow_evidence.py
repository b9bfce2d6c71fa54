"""Evidence attachment, aggregation and validation for flow movements."""

from __future__ import annotations

from typing import Any

from claimflow.application.dtos.flow_engine import (
    EvidenceItem,
    EvidenceValidationResult,
    MovementEvidenceResult,
)
from claimflow.application.interfaces.repositories import IMovementEvidenceRepository
from claimflow.application.services.evidence_validator import (
    EvidenceAggregator,
    EvidenceValidator,
)
from claimflow.application.services.flow_instance_store import FlowInstanceStore
from claimflow.domain.entities.flow_definition import FlowDefinitionEntity
from claimflow.domain.entities.flow_instance import FlowInstanceEntity
from claimflow.domain.exceptions import ResourceNotFoundException, ValidationException
from claimflow.domain.value_objects.flow import MovementDefinition, normalize_evidence_type
from claimflow.shared.logging import get_logger

logger = get_logger(__name__)


class FlowEvidenceService:
    """Links evidence to movements and checks it against their requirements.

    Evidence can be attached to any movement of the instance, including
    movements of earlier or later phases, and regardless of instance status.
    """

    def __init__(
        self,
        store: FlowInstanceStore,
        evidence_repo: IMovementEvidenceRepository,
        aggregator: EvidenceAggregator,
        validator: EvidenceValidator,
    ) -> None:
        self.store = store
        self.evidence_repo = evidence_repo
        self.aggregator = aggregator
        self.validator = validator

    async def attach_evidence(
        self,
        tenant_id: str,
        instance_id: str,
        movement_id: str,
        evidence_type: str,
        reference_id: str | None = None,
        data: dict[str, Any] | None = None,
        *,
        phase_id: str | None = None,
        created_by: str | None = None,
    ) -> MovementEvidenceResult:
        """Create a direct evidence link for a movement.

        Raises:
            ValidationException: Unknown evidence type, or neither reference nor data given.
            ResourceNotFoundException: Instance or movement not found.
        """
        normalized = normalize_evidence_type(evidence_type)
        if normalized is None:
            raise ValidationException(f"Unknown evidence type: {evidence_type}", field="evidence_type")
        if reference_id is None and not data:
            raise ValidationException(
                "Evidence needs a reference_id or data", field="reference_id"
            )
        entity, definition = await self.store.load(tenant_id, instance_id)
        movement = self._require_movement(entity, definition, movement_id, phase_id)
        link = await self.evidence_repo.create(
            tenant_id,
            flow_instance_id=instance_id,
            movement_key=movement.key,
            evidence_type=normalized.value,
            reference_id=reference_id,
            evidence_data=data or {},
            created_by=created_by,
        )
        logger.info(
            "Attached %s evidence %s to %s on flow %s",
            normalized.value,
            reference_id or link.id,
            movement.key,
            instance_id,
        )
        return link

    async def get_movement_evidence(
        self,
        tenant_id: str,
        instance_id: str,
        movement_id: str,
        *,
        phase_id: str | None = None,
    ) -> tuple[MovementDefinition, list[EvidenceItem]]:
        entity, definition = await self.store.load(tenant_id, instance_id)
        movement = self._require_movement(entity, definition, movement_id, phase_id)
        evidence = await self.aggregator.collect(tenant_id, instance_id, movement.key)
        return movement, evidence

    async def validate_evidence(
        self,
        tenant_id: str,
        instance_id: str,
        movement_id: str,
        *,
        phase_id: str | None = None,
        use_ai: bool = False,
    ) -> EvidenceValidationResult:
        entity, definition = await self.store.load(tenant_id, instance_id)
        movement = self._require_movement(entity, definition, movement_id, phase_id)
        evidence = await self.aggregator.collect(tenant_id, instance_id, movement.key)
        return await self.validator.validate(
            movement,
            evidence,
            use_ai=use_ai,
            claim_context=entity.context.get("claim") or {},
        )

    @staticmethod
    def _require_movement(
        entity: FlowInstanceEntity,
        definition: FlowDefinitionEntity,
        movement_id: str,
        phase_id: str | None,
    ) -> MovementDefinition:
        movement = entity.find_movement(definition, movement_id, phase_id)
        if movement is None:
            raise ResourceNotFoundException("movement", movement_id)
        return movement
