"""Flow instance API: execution, gates, evidence, dynamic movements and queries."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from claimflow.api.v1.dependencies import (
    get_dynamic_movement_service,
    get_flow_evidence_service,
    get_flow_execution_service,
    get_flow_lifecycle_service,
    get_flow_query_service,
    get_tenant_id,
)
from claimflow.application.use_cases.flows import (
    DynamicMovementService,
    FlowEvidenceService,
    FlowExecutionService,
    FlowLifecycleService,
    FlowQueryService,
)
from claimflow.schemas.flow_engine import (
    AddDynamicMovementRequest,
    AddRoomRequest,
    AttachEvidenceRequest,
    CancelFlowRequest,
    CompleteMovementRequest,
    CompleteMovementResponse,
    EvidenceItemResponse,
    EvidenceValidationResponse,
    FinalizationResponse,
    FlowInstanceResponse,
    FlowProgressResponse,
    GateOutcomeResponse,
    MovementEvidenceListResponse,
    MovementEvidenceResponse,
    MovementResponse,
    NavigateRequest,
    NextMovementResponse,
    PhaseAdvanceResponse,
    PhaseMovementStatusResponse,
    PhaseSummaryResponse,
    SkipMovementRequest,
    SkipMovementResponse,
    SuggestMovementsRequest,
    SuggestMovementsResponse,
    TimelineEntryResponse,
    ValidateEvidenceRequest,
)

router = APIRouter()

TenantId = Annotated[str, Depends(get_tenant_id)]
LifecycleService = Annotated[FlowLifecycleService, Depends(get_flow_lifecycle_service)]
ExecutionService = Annotated[FlowExecutionService, Depends(get_flow_execution_service)]
EvidenceService = Annotated[FlowEvidenceService, Depends(get_flow_evidence_service)]
DynamicService = Annotated[DynamicMovementService, Depends(get_dynamic_movement_service)]
QueryService = Annotated[FlowQueryService, Depends(get_flow_query_service)]


# ---- instance ------------------------------------------------------------


@router.get("/{flow_id}", response_model=FlowInstanceResponse)
async def get_flow(flow_id: str, tenant_id: TenantId, service: LifecycleService):
    instance = await service.get_flow_instance(tenant_id, flow_id)
    return FlowInstanceResponse.model_validate(instance)


@router.post("/{flow_id}/pause", response_model=FlowInstanceResponse)
async def pause_flow(flow_id: str, tenant_id: TenantId, service: LifecycleService):
    return FlowInstanceResponse.model_validate(await service.pause_flow(tenant_id, flow_id))


@router.post("/{flow_id}/resume", response_model=FlowInstanceResponse)
async def resume_flow(flow_id: str, tenant_id: TenantId, service: LifecycleService):
    return FlowInstanceResponse.model_validate(await service.resume_flow(tenant_id, flow_id))


@router.post("/{flow_id}/cancel", response_model=FlowInstanceResponse)
async def cancel_flow(
    flow_id: str,
    tenant_id: TenantId,
    service: LifecycleService,
    body: CancelFlowRequest | None = None,
):
    instance = await service.cancel_flow(tenant_id, flow_id, body.reason if body else None)
    return FlowInstanceResponse.model_validate(instance)


# ---- queries -------------------------------------------------------------


@router.get("/{flow_id}/progress", response_model=FlowProgressResponse)
async def get_flow_progress(flow_id: str, tenant_id: TenantId, service: QueryService):
    return FlowProgressResponse.model_validate(await service.get_flow_progress(tenant_id, flow_id))


@router.get("/{flow_id}/timeline", response_model=list[TimelineEntryResponse])
async def get_flow_timeline(flow_id: str, tenant_id: TenantId, service: QueryService):
    """Completions and skips in chronological order."""
    entries = await service.get_flow_timeline(tenant_id, flow_id)
    return [TimelineEntryResponse.model_validate(e) for e in entries]


@router.get("/{flow_id}/phases", response_model=list[PhaseSummaryResponse])
async def get_flow_phases(flow_id: str, tenant_id: TenantId, service: QueryService):
    phases = await service.get_flow_phases(tenant_id, flow_id)
    return [PhaseSummaryResponse.model_validate(p) for p in phases]


@router.get(
    "/{flow_id}/phases/{phase_id}/movements",
    response_model=list[PhaseMovementStatusResponse],
)
async def get_phase_movements(
    flow_id: str, phase_id: str, tenant_id: TenantId, service: QueryService
):
    statuses = await service.get_phase_movements(tenant_id, flow_id, phase_id)
    return [PhaseMovementStatusResponse.model_validate(s) for s in statuses]


# ---- execution -----------------------------------------------------------


@router.get("/{flow_id}/next", response_model=NextMovementResponse)
async def get_next_movement(
    flow_id: str,
    tenant_id: TenantId,
    service: ExecutionService,
    peek: bool = Query(False, description="Scan without persisting any phase advancement"),
):
    """Next actionable movement, a pending gate, or completion.

    Without ``peek`` a finished phase that has no outgoing gate is advanced.
    A phase with a gate stops at it and returns the gate unevaluated; use
    the evaluate or advance endpoints to run it.
    """
    if peek:
        result = await service.peek_next_movement(tenant_id, flow_id)
    else:
        result = await service.get_next_movement(tenant_id, flow_id)
    return NextMovementResponse.model_validate(result)


@router.get("/{flow_id}/previous", response_model=MovementResponse | None)
async def get_previous_movement(flow_id: str, tenant_id: TenantId, service: ExecutionService):
    movement = await service.get_previous_movement(tenant_id, flow_id)
    return MovementResponse.model_validate(movement) if movement else None


@router.get("/{flow_id}/finalization", response_model=FinalizationResponse)
async def get_finalization_status(flow_id: str, tenant_id: TenantId, service: ExecutionService):
    """Whether every required movement is completed; blockers list the rest."""
    return FinalizationResponse.model_validate(await service.can_finalize_flow(tenant_id, flow_id))


@router.post(
    "/{flow_id}/movements/{movement_id}/complete", response_model=CompleteMovementResponse
)
async def complete_movement(
    flow_id: str,
    movement_id: str,
    tenant_id: TenantId,
    service: ExecutionService,
    body: CompleteMovementRequest | None = None,
):
    """Complete a movement of the current phase. Repeating it is a no-op."""
    body = body or CompleteMovementRequest()
    result = await service.complete_movement(
        tenant_id,
        flow_id,
        movement_id,
        evidence=body.evidence,
        completed_by=body.completed_by,
        notes=body.notes,
    )
    return CompleteMovementResponse.model_validate(result)


@router.post("/{flow_id}/movements/{movement_id}/skip", response_model=SkipMovementResponse)
async def skip_movement(
    flow_id: str,
    movement_id: str,
    tenant_id: TenantId,
    service: ExecutionService,
    body: SkipMovementRequest | None = None,
):
    """Skip a movement. Required movements need force=true; otherwise a warning is returned."""
    body = body or SkipMovementRequest()
    result = await service.skip_movement(
        tenant_id,
        flow_id,
        movement_id,
        reason=body.reason,
        skipped_by=body.skipped_by,
        force=body.force,
    )
    return SkipMovementResponse.model_validate(result)


@router.post("/{flow_id}/movements/{movement_id}/navigate", response_model=NextMovementResponse)
async def navigate_to_movement(
    flow_id: str,
    movement_id: str,
    tenant_id: TenantId,
    service: ExecutionService,
    body: NavigateRequest | None = None,
):
    """Jump to a movement of the current or an earlier phase; later phases return 409."""
    result = await service.go_to_movement(
        tenant_id, flow_id, movement_id, body.phase_id if body else None
    )
    return NextMovementResponse.model_validate(result)


@router.post("/{flow_id}/gates/{gate_id}/evaluate", response_model=GateOutcomeResponse)
async def evaluate_gate(
    flow_id: str, gate_id: str, tenant_id: TenantId, service: ExecutionService
):
    """Evaluate a gate of the current phase and apply the outcome."""
    return GateOutcomeResponse.model_validate(
        await service.evaluate_gate(tenant_id, flow_id, gate_id)
    )


@router.post("/{flow_id}/advance", response_model=PhaseAdvanceResponse)
async def advance_to_next_phase(flow_id: str, tenant_id: TenantId, service: ExecutionService):
    return PhaseAdvanceResponse.model_validate(
        await service.advance_to_next_phase(tenant_id, flow_id)
    )


# ---- evidence ------------------------------------------------------------


@router.post(
    "/{flow_id}/movements/{movement_id}/evidence",
    response_model=MovementEvidenceResponse,
    status_code=201,
)
async def attach_evidence(
    flow_id: str,
    movement_id: str,
    body: AttachEvidenceRequest,
    tenant_id: TenantId,
    service: EvidenceService,
):
    link = await service.attach_evidence(
        tenant_id,
        flow_id,
        movement_id,
        body.evidence_type,
        body.reference_id,
        body.data,
        phase_id=body.phase_id,
        created_by=body.created_by,
    )
    return MovementEvidenceResponse.model_validate(link)


@router.get(
    "/{flow_id}/movements/{movement_id}/evidence",
    response_model=MovementEvidenceListResponse,
)
async def get_movement_evidence(
    flow_id: str,
    movement_id: str,
    tenant_id: TenantId,
    service: EvidenceService,
    phase_id: str | None = Query(None),
):
    """Evidence from direct links, linked photos and audio, and completion data, deduplicated."""
    movement, evidence = await service.get_movement_evidence(
        tenant_id, flow_id, movement_id, phase_id=phase_id
    )
    return MovementEvidenceListResponse(
        movement=MovementResponse.model_validate(movement),
        evidence=[EvidenceItemResponse.model_validate(e) for e in evidence],
    )


@router.post(
    "/{flow_id}/movements/{movement_id}/validate",
    response_model=EvidenceValidationResponse,
)
async def validate_movement_evidence(
    flow_id: str,
    movement_id: str,
    tenant_id: TenantId,
    service: EvidenceService,
    body: ValidateEvidenceRequest | None = None,
):
    body = body or ValidateEvidenceRequest()
    result = await service.validate_evidence(
        tenant_id, flow_id, movement_id, phase_id=body.phase_id, use_ai=body.use_ai
    )
    return EvidenceValidationResponse.model_validate(result)


# ---- dynamic movements ---------------------------------------------------


@router.post("/{flow_id}/movements", response_model=MovementResponse, status_code=201)
async def add_dynamic_movement(
    flow_id: str,
    body: AddDynamicMovementRequest,
    tenant_id: TenantId,
    service: DynamicService,
):
    """Add a movement cloned from a template (optionally per room) or a custom one."""
    movement = await service.add_dynamic_movement(
        tenant_id,
        flow_id,
        payload=body.movement,
        template_movement_id=body.template_movement_id,
        room_name=body.room_name,
        phase_id=body.phase_id,
        added_by=body.added_by,
    )
    return MovementResponse.model_validate(movement)


@router.post("/{flow_id}/rooms", response_model=list[MovementResponse], status_code=201)
async def add_room(
    flow_id: str,
    body: AddRoomRequest,
    tenant_id: TenantId,
    service: DynamicService,
):
    """Generate room-specific movements with the language model and add them to the current phase."""
    movements = await service.add_room(
        tenant_id, flow_id, body.room_name, body.room_type, added_by=body.added_by
    )
    return [MovementResponse.model_validate(m) for m in movements]


@router.post("/{flow_id}/suggest", response_model=SuggestMovementsResponse)
async def suggest_movements(
    flow_id: str,
    tenant_id: TenantId,
    service: DynamicService,
    body: SuggestMovementsRequest | None = None,
):
    """Suggested additional movements; nothing is added to the flow."""
    body = body or SuggestMovementsRequest()
    suggestions = await service.suggest_additional_movements(
        tenant_id, flow_id, body.observed_damage, body.context
    )
    return SuggestMovementsResponse(suggestions=suggestions)
