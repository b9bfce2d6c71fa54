"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference application DTOs or domain entities only; no infrastructure imports.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from claimflow.application.dtos.flow_definition import (
        FlowDefinitionCreate,
        FlowDefinitionResult,
    )
    from claimflow.application.dtos.flow_engine import (
        AudioObservationResult,
        ClaimPhotoResult,
        FlowInstanceCreate,
        FlowInstanceResult,
        GateEvaluationCreate,
        GateEvaluationResult,
        MovementCompletionCreate,
        MovementCompletionResult,
        MovementEvidenceResult,
    )
    from claimflow.domain.entities.flow_instance import FlowInstanceEntity


class IFlowDefinitionRepository(Protocol):
    """Protocol for flow definition repository (DIP)."""

    async def get_by_id(self, definition_id: str) -> FlowDefinitionResult | None:
        """Return definition by id regardless of tenant (instances pin their definition)."""

    async def get_visible(
        self, tenant_id: str, definition_id: str
    ) -> FlowDefinitionResult | None:
        """Return definition if owned by tenant or a system definition."""

    async def list_visible(
        self, tenant_id: str, include_inactive: bool = False
    ) -> list[FlowDefinitionResult]:
        """Return tenant-owned and system definitions, ordered by flow_key then version desc."""

    async def list_active(self, tenant_id: str) -> list[FlowDefinitionResult]:
        """Return active definitions visible to tenant (selection candidates)."""

    async def get_latest_version(self, tenant_id: str, flow_key: str) -> int:
        """Return the highest version for flow_key visible to tenant, 0 if none."""

    async def create(
        self, tenant_id: str | None, data: FlowDefinitionCreate, *, is_system: bool = False
    ) -> FlowDefinitionResult:
        """Insert a definition version row."""

    async def update_fields(
        self, definition_id: str, **fields: object
    ) -> FlowDefinitionResult:
        """Update mutable columns (name, description, perils, property_types, is_active)."""

    async def delete(self, definition_id: str) -> bool:
        """Delete definition row. Returns False if it did not exist."""


class IFlowInstanceRepository(Protocol):
    """Protocol for flow instance repository (DIP)."""

    async def get_by_id_and_tenant(
        self, instance_id: str, tenant_id: str
    ) -> FlowInstanceResult | None:
        """Return instance by id in tenant, reading the latest committed state."""

    async def get_current_for_claim(
        self, tenant_id: str, claim_id: str
    ) -> FlowInstanceResult | None:
        """Return the active or paused instance for the claim (newest first)."""

    async def list_for_claim(self, tenant_id: str, claim_id: str) -> list[FlowInstanceResult]:
        """Return all instances for the claim, newest first."""

    async def list_open_for_claim(
        self, tenant_id: str, claim_id: str
    ) -> list[FlowInstanceResult]:
        """Return active and paused instances for the claim."""

    async def count_for_definition(self, definition_id: str) -> int:
        """Return number of instances referencing a definition."""

    async def create(self, tenant_id: str, data: FlowInstanceCreate) -> FlowInstanceResult:
        """Insert a new active instance at version 1."""

    async def save_state(
        self, entity: FlowInstanceEntity, expected_version: int
    ) -> FlowInstanceResult:
        """Write the entity state if the stored version equals expected_version.

        Raises:
            FlowInstanceConflictException: If another writer bumped the version first.
        """


class IMovementCompletionRepository(Protocol):
    """Protocol for the append-only movement completion audit log."""

    async def create(
        self, tenant_id: str, data: MovementCompletionCreate
    ) -> MovementCompletionResult:
        """Append a completion or skip row."""

    async def list_for_instance(
        self, tenant_id: str, flow_instance_id: str
    ) -> list[MovementCompletionResult]:
        """Return rows in chronological order."""

    async def list_for_movement(
        self, tenant_id: str, flow_instance_id: str, movement_key: str
    ) -> list[MovementCompletionResult]:
        """Return rows for one movement key in chronological order."""


class IMovementEvidenceRepository(Protocol):
    """Protocol for direct evidence links."""

    async def create(
        self,
        tenant_id: str,
        flow_instance_id: str,
        movement_key: str,
        evidence_type: str,
        reference_id: str | None,
        evidence_data: dict,
        created_by: str | None,
    ) -> MovementEvidenceResult:
        """Insert an evidence link."""

    async def list_for_movement(
        self, tenant_id: str, flow_instance_id: str, movement_key: str
    ) -> list[MovementEvidenceResult]:
        """Return evidence links for a movement (oldest first)."""

    async def list_for_instance(
        self, tenant_id: str, flow_instance_id: str
    ) -> list[MovementEvidenceResult]:
        """Return all evidence links for an instance (oldest first)."""


class IClaimMediaRepository(Protocol):
    """Protocol for photo and audio records already linked to flow movements."""

    async def list_photos(
        self, tenant_id: str, flow_instance_id: str, movement_key: str
    ) -> list[ClaimPhotoResult]:
        """Return photos linked to a movement."""

    async def list_audio(
        self, tenant_id: str, flow_instance_id: str, movement_key: str
    ) -> list[AudioObservationResult]:
        """Return audio observations linked to a movement."""


class IGateEvaluationRepository(Protocol):
    """Protocol for the gate evaluation audit log."""

    async def create(
        self, tenant_id: str, data: GateEvaluationCreate
    ) -> GateEvaluationResult:
        """Record a gate evaluation."""

    async def list_for_instance(
        self, tenant_id: str, flow_instance_id: str
    ) -> list[GateEvaluationResult]:
        """Return evaluations in chronological order."""
