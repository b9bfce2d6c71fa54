"""Flow definition API: thin routes delegating to FlowDefinitionService."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Response

from claimflow.api.v1.dependencies import get_flow_definition_service, get_tenant_id
from claimflow.application.dtos.flow_definition import (
    FlowDefinitionCreate,
    FlowDefinitionUpdate,
)
from claimflow.application.use_cases.flows import FlowDefinitionService
from claimflow.schemas.flow_definition import (
    FlowDefinitionCreateRequest,
    FlowDefinitionDuplicateRequest,
    FlowDefinitionResponse,
    FlowDefinitionUpdateRequest,
    FlowJsonValidateRequest,
    FlowValidationResponse,
)

router = APIRouter()

DefinitionService = Annotated[FlowDefinitionService, Depends(get_flow_definition_service)]
TenantId = Annotated[str, Depends(get_tenant_id)]


@router.get("", response_model=list[FlowDefinitionResponse])
async def list_flow_definitions(
    tenant_id: TenantId,
    service: DefinitionService,
    include_inactive: bool = Query(False),
):
    """Latest version of each flow visible to the tenant (own and system)."""
    definitions = await service.list_definitions(tenant_id, include_inactive=include_inactive)
    return [FlowDefinitionResponse.model_validate(d) for d in definitions]


@router.post("", response_model=FlowDefinitionResponse, status_code=201)
async def create_flow_definition(
    body: FlowDefinitionCreateRequest,
    tenant_id: TenantId,
    service: DefinitionService,
):
    definition = await service.create_definition(
        tenant_id,
        FlowDefinitionCreate(
            flow_key=body.flow_key,
            name=body.name,
            flow_json=body.flow_json,
            description=body.description,
            perils=body.perils,
            property_types=body.property_types,
            is_active=body.is_active,
        ),
    )
    return FlowDefinitionResponse.model_validate(definition)


@router.get("/template")
async def get_flow_template(
    tenant_id: TenantId,
    service: DefinitionService,
) -> dict[str, Any]:
    """Empty flow_json skeleton for editors."""
    return service.get_empty_template()


@router.post("/validate", response_model=FlowValidationResponse)
async def validate_flow_json(
    body: FlowJsonValidateRequest,
    tenant_id: TenantId,
    service: DefinitionService,
):
    """Validate flow_json without saving; errors and warnings are returned, never raised."""
    return FlowValidationResponse.model_validate(service.validate_flow_json(body.flow_json))


@router.get("/{definition_id}", response_model=FlowDefinitionResponse)
async def get_flow_definition(
    definition_id: str,
    tenant_id: TenantId,
    service: DefinitionService,
):
    definition = await service.get_definition(tenant_id, definition_id)
    return FlowDefinitionResponse.model_validate(definition)


@router.put("/{definition_id}", response_model=FlowDefinitionResponse)
async def update_flow_definition(
    definition_id: str,
    body: FlowDefinitionUpdateRequest,
    tenant_id: TenantId,
    service: DefinitionService,
):
    """Update metadata in place; a flow_json change returns the new version row."""
    definition = await service.update_definition(
        tenant_id,
        definition_id,
        FlowDefinitionUpdate(
            name=body.name,
            description=body.description,
            perils=body.perils,
            property_types=body.property_types,
            is_active=body.is_active,
            flow_json=body.flow_json,
        ),
    )
    return FlowDefinitionResponse.model_validate(definition)


@router.delete("/{definition_id}", status_code=204)
async def delete_flow_definition(
    definition_id: str,
    tenant_id: TenantId,
    service: DefinitionService,
):
    await service.delete_definition(tenant_id, definition_id)
    return Response(status_code=204)


@router.post(
    "/{definition_id}/duplicate", response_model=FlowDefinitionResponse, status_code=201
)
async def duplicate_flow_definition(
    definition_id: str,
    body: FlowDefinitionDuplicateRequest,
    tenant_id: TenantId,
    service: DefinitionService,
):
    definition = await service.duplicate_definition(tenant_id, definition_id, body.new_name)
    return FlowDefinitionResponse.model_validate(definition)


@router.patch("/{definition_id}/activate", response_model=FlowDefinitionResponse)
async def toggle_flow_definition_active(
    definition_id: str,
    tenant_id: TenantId,
    service: DefinitionService,
):
    """Flip is_active on the definition."""
    definition = await service.toggle_active(tenant_id, definition_id)
    return FlowDefinitionResponse.model_validate(definition)
