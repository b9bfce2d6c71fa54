"""Claim-scoped flow routes: start, list and cancel a claim's inspection flows."""

from typing import Annotated

from fastapi import APIRouter, Depends

from claimflow.api.v1.dependencies import get_flow_lifecycle_service, get_tenant_id
from claimflow.application.use_cases.flows import FlowLifecycleService
from claimflow.schemas.flow_engine import (
    CancelFlowRequest,
    CancelFlowsResponse,
    FlowInstanceResponse,
    FlowSelectionResponse,
    StartFlowRequest,
    StartFlowResponse,
)

router = APIRouter()

LifecycleService = Annotated[FlowLifecycleService, Depends(get_flow_lifecycle_service)]
TenantId = Annotated[str, Depends(get_tenant_id)]


@router.post("/{claim_id}/flows", response_model=StartFlowResponse, status_code=201)
async def start_claim_flow(
    claim_id: str,
    body: StartFlowRequest,
    tenant_id: TenantId,
    service: LifecycleService,
):
    """Start a flow for the claim. Any active or paused flow of the claim is cancelled."""
    instance, selection = await service.start_flow_for_claim(
        tenant_id,
        claim_id,
        body.peril_type or "",
        body.property_type,
        flow_definition_id=body.flow_definition_id,
        claim_context=body.claim_context,
        started_by=body.started_by,
    )
    return StartFlowResponse(
        flow_instance=FlowInstanceResponse.model_validate(instance),
        selection=FlowSelectionResponse.model_validate(selection) if selection else None,
    )


@router.get("/{claim_id}/flows", response_model=list[FlowInstanceResponse])
async def list_claim_flows(
    claim_id: str,
    tenant_id: TenantId,
    service: LifecycleService,
):
    """All flow instances of the claim, newest first."""
    instances = await service.list_flows_for_claim(tenant_id, claim_id)
    return [FlowInstanceResponse.model_validate(i) for i in instances]


@router.get("/{claim_id}/flows/current", response_model=FlowInstanceResponse | None)
async def get_current_claim_flow(
    claim_id: str,
    tenant_id: TenantId,
    service: LifecycleService,
):
    """The claim's active or paused flow, or null."""
    instance = await service.get_current_flow(tenant_id, claim_id)
    return FlowInstanceResponse.model_validate(instance) if instance else None


@router.delete("/{claim_id}/flows", response_model=CancelFlowsResponse)
async def cancel_claim_flows(
    claim_id: str,
    tenant_id: TenantId,
    service: LifecycleService,
    body: CancelFlowRequest | None = None,
):
    cancelled = await service.cancel_current_flow(
        tenant_id, claim_id, body.reason if body else None
    )
    return CancelFlowsResponse(cancelled=cancelled)
