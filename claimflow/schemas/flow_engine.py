"""Flow instance, movement, gate and evidence API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from claimflow.application.dtos.dynamic_movement import DynamicMovementPayload
from claimflow.domain.enums import (
    Criticality,
    EvidenceType,
    GateEvaluationType,
    GateType,
    NextStepKind,
)
from claimflow.schemas.flow_definition import FlowDefinitionResponse

# ---- definitions as seen by an instance ----------------------------------


class EvidenceRequirementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: EvidenceType
    description: str | None
    is_required: bool
    quantity_min: int
    quantity_max: int | None


class MovementResponse(BaseModel):
    """Template or dynamic movement; key is ``<phase_id>:<movement_id>``."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    phase_id: str
    key: str
    name: str
    description: str | None
    sequence_order: int
    is_required: bool
    criticality: Criticality
    guidance: dict[str, Any]
    evidence_requirements: list[EvidenceRequirementResponse]
    estimated_minutes: int | None
    is_dynamic: bool
    room_name: str | None


class PhaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None
    sequence_order: int


class GateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    from_phase: str
    to_phase: str | None
    gate_type: GateType
    evaluation_type: GateEvaluationType
    description: str | None


# ---- instances -----------------------------------------------------------


class StartFlowRequest(BaseModel):
    """Start a flow for a claim; cancels the claim's open instances first."""

    peril_type: str | None = Field(default=None, max_length=100)
    property_type: str | None = Field(default=None, max_length=100)
    flow_definition_id: str | None = None
    claim_context: dict[str, Any] = Field(default_factory=dict)
    started_by: str | None = None


class CancelFlowRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class FlowInstanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    claim_id: str
    flow_definition_id: str
    status: str
    current_phase_index: int
    current_phase_id: str | None
    current_movement_key: str | None
    completed_movement_keys: list[str]
    dynamic_movements: list[dict[str, Any]]
    context: dict[str, Any]
    version: int
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class FlowSelectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    peril_type: str
    requires_selection: bool
    used_fallback: bool
    candidates: list[FlowDefinitionResponse]


class StartFlowResponse(BaseModel):
    flow_instance: FlowInstanceResponse
    selection: FlowSelectionResponse | None = None


class CancelFlowsResponse(BaseModel):
    cancelled: int


# ---- execution -----------------------------------------------------------


class NextMovementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: NextStepKind
    flow_instance_id: str
    phase: PhaseResponse | None
    movement: MovementResponse | None
    gate: GateResponse | None
    phase_advanced: bool
    flow_completed: bool


class NavigateRequest(BaseModel):
    phase_id: str | None = None


class CompleteMovementRequest(BaseModel):
    """``evidence`` is stored as the completion's evidence_data blob."""

    evidence: dict[str, Any] = Field(default_factory=dict)
    notes: str | None = Field(default=None, max_length=5000)
    completed_by: str | None = None


class SkipMovementRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)
    skipped_by: str | None = None
    force: bool = False


class MovementCompletionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    flow_instance_id: str
    claim_id: str
    movement_key: str
    phase_id: str
    movement_id: str
    status: str
    skipped_required: bool
    completed_by: str | None
    notes: str | None
    evidence_data: dict[str, Any]
    completed_at: datetime


class GateOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    gate_id: str
    passed: bool
    reason: str | None
    evaluation_type: str
    gate_blocked: bool
    advisory: bool
    phase_advanced: bool
    flow_completed: bool
    current_phase_id: str | None
    details: dict[str, Any]


class CompleteMovementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    completion: MovementCompletionResponse
    phase_advanced: bool
    flow_completed: bool
    gate_pending: bool
    already_completed: bool
    gate_outcome: GateOutcomeResponse | None


class SkipMovementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    skipped: bool
    was_required: bool
    warning: str | None
    completion: MovementCompletionResponse | None
    phase_advanced: bool
    flow_completed: bool
    gate_pending: bool
    gate_outcome: GateOutcomeResponse | None


class PhaseAdvanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phase_advanced: bool
    flow_completed: bool
    current_phase: PhaseResponse | None
    gate_outcome: GateOutcomeResponse | None
    gate_pending: bool


class FinalizationBlockerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    movement_key: str
    movement_name: str | None
    reason: str
    message: str


class FinalizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    can_finalize: bool
    blockers: list[FinalizationBlockerResponse]


# ---- queries -------------------------------------------------------------


class FlowProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    flow_instance_id: str
    status: str
    total: int
    completed: int
    percent_complete: float
    current_phase_index: int
    current_phase_id: str | None
    total_phases: int


class PhaseSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None
    sequence_order: int
    movement_count: int
    completed_movement_count: int
    is_completed: bool
    is_current: bool


class PhaseMovementStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    movement: MovementResponse
    is_completed: bool
    status: str | None
    completed_at: datetime | None
    notes: str | None


class TimelineEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    movement_key: str
    phase_id: str
    movement_id: str
    movement_name: str | None
    status: str
    skipped_required: bool
    completed_by: str | None
    notes: str | None
    evidence_count: int
    completed_at: datetime


# ---- evidence ------------------------------------------------------------


class AttachEvidenceRequest(BaseModel):
    evidence_type: str = Field(..., min_length=1, max_length=50)
    reference_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    phase_id: str | None = None
    created_by: str | None = None


class MovementEvidenceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    flow_instance_id: str
    movement_key: str
    evidence_type: str
    reference_id: str | None
    evidence_data: dict[str, Any]
    created_by: str | None
    created_at: datetime


class EvidenceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    source: str
    reference_id: str | None
    data: dict[str, Any]
    created_at: datetime | None


class MovementEvidenceListResponse(BaseModel):
    movement: MovementResponse
    evidence: list[EvidenceItemResponse]


class ValidateEvidenceRequest(BaseModel):
    use_ai: bool = False
    phase_id: str | None = None


class EvidenceValidationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_valid: bool
    missing_items: list[str]
    quality_issues: list[str]
    confidence: float
    ai_assessed: bool
    evidence_counts: dict[str, int]


# ---- dynamic movements ---------------------------------------------------


class AddDynamicMovementRequest(BaseModel):
    """Clone ``template_movement_id`` (optionally for a room) or add ``movement`` as given."""

    template_movement_id: str | None = None
    room_name: str | None = Field(default=None, max_length=200)
    phase_id: str | None = None
    movement: DynamicMovementPayload | None = None
    added_by: str | None = None


class AddRoomRequest(BaseModel):
    room_name: str = Field(..., min_length=1, max_length=200)
    room_type: str | None = Field(default=None, max_length=100)
    added_by: str | None = None


class SuggestMovementsRequest(BaseModel):
    observed_damage: list[str] = Field(default_factory=list, max_length=50)
    context: dict[str, Any] = Field(default_factory=dict)


class SuggestMovementsResponse(BaseModel):
    suggestions: list[dict[str, Any]]
