"""DTOs for flow instances, completions, evidence and engine results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from claimflow.domain.enums import NextStepKind
from claimflow.domain.value_objects.flow import (
    GateDefinition,
    MovementDefinition,
    PhaseDefinition,
)


@dataclass(frozen=True)
class FlowInstanceResult:
    """Flow instance read-model (persisted state)."""

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


@dataclass(frozen=True)
class FlowInstanceCreate:
    claim_id: str
    flow_definition_id: str
    current_phase_index: int
    current_phase_id: str | None
    context: dict[str, Any]
    started_by: str | None = None


@dataclass(frozen=True)
class MovementCompletionCreate:
    """Audit row to append when a movement is completed or skipped."""

    flow_instance_id: str
    claim_id: str
    movement_key: str
    phase_id: str
    movement_id: str
    status: str
    completed_by: str | None = None
    notes: str | None = None
    evidence_data: dict[str, Any] = field(default_factory=dict)
    skipped_required: bool = False


@dataclass(frozen=True)
class MovementCompletionResult:
    id: str
    tenant_id: str
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


@dataclass(frozen=True)
class MovementEvidenceResult:
    """Direct evidence link row."""

    id: str
    tenant_id: str
    flow_instance_id: str
    movement_key: str
    evidence_type: str
    reference_id: str | None
    evidence_data: dict[str, Any]
    created_by: str | None
    created_at: datetime


@dataclass(frozen=True)
class ClaimPhotoResult:
    """Photo already linked to a flow movement (evidence source)."""

    id: str
    claim_id: str
    flow_instance_id: str | None
    movement_key: str | None
    storage_url: str | None
    label: str | None
    analysis: dict[str, Any]
    created_at: datetime


@dataclass(frozen=True)
class AudioObservationResult:
    """Transcribed audio observation linked to a flow movement (evidence source)."""

    id: str
    claim_id: str
    flow_instance_id: str | None
    movement_key: str | None
    audio_url: str | None
    transcription: str | None
    created_at: datetime


@dataclass(frozen=True)
class GateEvaluationCreate:
    flow_instance_id: str
    gate_id: str
    result: str
    reason: str | None
    evaluation_type: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GateEvaluationResult:
    id: str
    tenant_id: str
    flow_instance_id: str
    gate_id: str
    result: str
    reason: str | None
    evaluation_type: str
    details: dict[str, Any]
    evaluated_at: datetime


# ---- engine results -----------------------------------------------------


@dataclass(frozen=True)
class GateDecision:
    """Strategy verdict before the engine applies it to the instance."""

    passed: bool
    reason: str | None
    evaluation_type: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GateOutcome:
    """Result of evaluating a gate against an instance.

    ``gate_blocked`` is True when a blocking gate failed and the instance
    stays on its phase; advisory failures still advance.
    """

    gate_id: str
    passed: bool
    reason: str | None
    evaluation_type: str
    gate_blocked: bool
    advisory: bool
    phase_advanced: bool
    flow_completed: bool
    current_phase_id: str | None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NextMovementResult:
    """Tagged executor result: movement, gate, phase_advanced or complete."""

    kind: NextStepKind
    flow_instance_id: str
    phase: PhaseDefinition | None = None
    movement: MovementDefinition | None = None
    gate: GateDefinition | None = None
    phase_advanced: bool = False
    flow_completed: bool = False


@dataclass(frozen=True)
class CompleteMovementResult:
    completion: MovementCompletionResult
    phase_advanced: bool
    flow_completed: bool
    gate_pending: bool
    already_completed: bool = False
    gate_outcome: GateOutcome | None = None


@dataclass(frozen=True)
class SkipMovementResult:
    """Skip outcome; a required movement without force returns skipped=False and a warning."""

    skipped: bool
    was_required: bool
    warning: str | None = None
    completion: MovementCompletionResult | None = None
    phase_advanced: bool = False
    flow_completed: bool = False
    gate_pending: bool = False
    gate_outcome: GateOutcome | None = None


@dataclass(frozen=True)
class PhaseAdvanceResult:
    phase_advanced: bool
    flow_completed: bool
    current_phase: PhaseDefinition | None
    gate_outcome: GateOutcome | None = None
    gate_pending: bool = False


@dataclass(frozen=True)
class FinalizationBlocker:
    movement_key: str
    movement_name: str | None
    reason: str
    message: str


@dataclass(frozen=True)
class FinalizationResult:
    can_finalize: bool
    blockers: list[FinalizationBlocker]


@dataclass(frozen=True)
class EvidenceItem:
    """One piece of evidence from any source, keyed by (type, reference_id) for dedupe."""

    type: str
    source: str
    reference_id: str | None
    data: dict[str, Any]
    created_at: datetime | None = None


@dataclass(frozen=True)
class EvidenceValidationResult:
    is_valid: bool
    missing_items: list[str]
    quality_issues: list[str]
    confidence: float
    ai_assessed: bool
    evidence_counts: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class FlowProgress:
    flow_instance_id: str
    status: str
    total: int
    completed: int
    percent_complete: float
    current_phase_index: int
    current_phase_id: str | None
    total_phases: int


@dataclass(frozen=True)
class PhaseSummary:
    id: str
    name: str
    description: str | None
    sequence_order: int
    movement_count: int
    completed_movement_count: int
    is_completed: bool
    is_current: bool


@dataclass(frozen=True)
class PhaseMovementStatus:
    movement: MovementDefinition
    is_completed: bool
    status: str | None
    completed_at: datetime | None
    notes: str | None


@dataclass(frozen=True)
class TimelineEntry:
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
