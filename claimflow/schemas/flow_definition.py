"""Flow definition API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FlowDefinitionCreateRequest(BaseModel):
    """Request body for creating a flow definition (next version of flow_key)."""

    flow_key: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    flow_json: dict[str, Any]
    description: str | None = None
    perils: list[str] = Field(default_factory=list)
    property_types: list[str] = Field(default_factory=list)
    is_active: bool = True


class FlowDefinitionUpdateRequest(BaseModel):
    """Partial update. Changing flow_json creates a new version."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    perils: list[str] | None = None
    property_types: list[str] | None = None
    is_active: bool | None = None
    flow_json: dict[str, Any] | None = None


class FlowDefinitionDuplicateRequest(BaseModel):
    new_name: str = Field(..., min_length=1, max_length=200)


class FlowJsonValidateRequest(BaseModel):
    flow_json: Any


class FlowDefinitionResponse(BaseModel):
    """Flow definition response (one version row)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str | None
    flow_key: str
    name: str
    description: str | None
    perils: list[str]
    property_types: list[str]
    version: int
    is_active: bool
    is_system: bool
    flow_json: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class ValidationIssueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    path: str
    message: str
    severity: str


class FlowValidationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_valid: bool
    errors: list[ValidationIssueResponse]
    warnings: list[ValidationIssueResponse]
