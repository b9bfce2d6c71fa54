"""Flow definition store: CRUD, versioning, duplication and validation of templates."""

from __future__ import annotations

import copy
from typing import Any

from claimflow.application.dtos.flow_definition import (
    FlowDefinitionCreate,
    FlowDefinitionResult,
    FlowDefinitionUpdate,
    FlowValidationResult,
)
from claimflow.application.interfaces.repositories import (
    IFlowDefinitionRepository,
    IFlowInstanceRepository,
)
from claimflow.application.services.flow_json_validator import (
    FlowJsonValidator,
    get_empty_template,
)
from claimflow.domain.exceptions import (
    FlowDefinitionInUseException,
    FlowDefinitionValidationException,
    ResourceNotFoundException,
    ValidationException,
)
from claimflow.domain.value_objects.flow import normalize_peril
from claimflow.shared.logging import get_logger
from claimflow.shared.utils.generators import slugify

logger = get_logger(__name__)


class FlowDefinitionService:
    """Manages flow definitions visible to a tenant (own plus system definitions).

    System definitions are read-only for tenants; duplicate one to customise it.
    """

    def __init__(
        self,
        definition_repo: IFlowDefinitionRepository,
        instance_repo: IFlowInstanceRepository,
        validator: FlowJsonValidator | None = None,
    ) -> None:
        self.definition_repo = definition_repo
        self.instance_repo = instance_repo
        self.validator = validator or FlowJsonValidator()

    async def list_definitions(
        self, tenant_id: str, include_inactive: bool = False
    ) -> list[FlowDefinitionResult]:
        return await self.definition_repo.list_visible(tenant_id, include_inactive)

    async def get_definition(self, tenant_id: str, definition_id: str) -> FlowDefinitionResult:
        definition = await self.definition_repo.get_visible(tenant_id, definition_id)
        if definition is None:
            raise ResourceNotFoundException("flow_definition", definition_id)
        return definition

    def validate_flow_json(self, flow_json: Any) -> FlowValidationResult:
        return self.validator.validate(flow_json)

    def get_empty_template(self) -> dict[str, Any]:
        return get_empty_template()

    async def create_definition(
        self, tenant_id: str, data: FlowDefinitionCreate
    ) -> FlowDefinitionResult:
        """Validate flow_json and create the next version of ``data.flow_key``.

        Raises:
            FlowDefinitionValidationException: flow_json has errors.
        """
        self._ensure_valid(data.flow_json)
        flow_key = slugify(data.flow_key, max_length=80)
        if not flow_key:
            raise ValidationException("flow_key must contain letters or digits", field="flow_key")
        version = await self.definition_repo.get_latest_version(tenant_id, flow_key) + 1
        created = await self.definition_repo.create(
            tenant_id,
            FlowDefinitionCreate(
                flow_key=flow_key,
                name=data.name,
                flow_json=data.flow_json,
                description=data.description,
                perils=[normalize_peril(p) for p in data.perils if p],
                property_types=[p.strip().lower() for p in data.property_types if p],
                is_active=data.is_active,
                version=version,
            ),
        )
        logger.info(
            "Created flow definition %s (%s v%d) for tenant %s",
            created.id,
            created.flow_key,
            created.version,
            tenant_id,
        )
        return created

    async def update_definition(
        self, tenant_id: str, definition_id: str, data: FlowDefinitionUpdate
    ) -> FlowDefinitionResult:
        """Update in place, or create a new version when flow_json changes.

        Raises:
            ResourceNotFoundException: Not visible to tenant.
            ValidationException: System definitions cannot be edited.
            FlowDefinitionValidationException: New flow_json has errors.
        """
        current = await self._get_owned(tenant_id, definition_id)
        if data.flow_json is not None and data.flow_json != current.flow_json:
            self._ensure_valid(data.flow_json)
            next_version = await self.definition_repo.get_latest_version(tenant_id, current.flow_key) + 1
            created = await self.definition_repo.create(
                tenant_id,
                FlowDefinitionCreate(
                    flow_key=current.flow_key,
                    name=data.name if data.name is not None else current.name,
                    flow_json=data.flow_json,
                    description=data.description if data.description is not None else current.description,
                    perils=[normalize_peril(p) for p in (data.perils if data.perils is not None else current.perils)],
                    property_types=list(
                        data.property_types if data.property_types is not None else current.property_types
                    ),
                    is_active=data.is_active if data.is_active is not None else current.is_active,
                    version=next_version,
                ),
            )
            logger.info(
                "Flow definition %s v%d superseded by %s v%d",
                current.flow_key,
                current.version,
                created.id,
                created.version,
            )
            return created

        fields: dict[str, Any] = {}
        if data.name is not None:
            fields["name"] = data.name
        if data.description is not None:
            fields["description"] = data.description
        if data.perils is not None:
            fields["perils"] = [normalize_peril(p) for p in data.perils if p]
        if data.property_types is not None:
            fields["property_types"] = [p.strip().lower() for p in data.property_types if p]
        if data.is_active is not None:
            fields["is_active"] = data.is_active
        if not fields:
            return current
        return await self.definition_repo.update_fields(definition_id, **fields)

    async def delete_definition(self, tenant_id: str, definition_id: str) -> None:
        """Delete a definition version no instance references.

        Raises:
            FlowDefinitionInUseException: Instances still reference it.
        """
        await self._get_owned(tenant_id, definition_id)
        in_use = await self.instance_repo.count_for_definition(definition_id)
        if in_use:
            raise FlowDefinitionInUseException(definition_id, in_use)
        await self.definition_repo.delete(definition_id)
        logger.info("Deleted flow definition %s for tenant %s", definition_id, tenant_id)

    async def duplicate_definition(
        self, tenant_id: str, definition_id: str, new_name: str
    ) -> FlowDefinitionResult:
        """Copy a definition as version 1 of a new flow key, inactive for review."""
        original = await self.get_definition(tenant_id, definition_id)
        if not new_name or not new_name.strip():
            raise ValidationException("new_name is required", field="new_name")
        flow_json = copy.deepcopy(original.flow_json)
        flow_json.setdefault("metadata", {})["name"] = new_name
        base_key = slugify(new_name, max_length=60) or original.flow_key
        flow_key = base_key
        suffix = 2
        while await self.definition_repo.get_latest_version(tenant_id, flow_key):
            flow_key = f"{base_key}_{suffix}"
            suffix += 1
        return await self.definition_repo.create(
            tenant_id,
            FlowDefinitionCreate(
                flow_key=flow_key,
                name=new_name,
                flow_json=flow_json,
                description=original.description,
                perils=list(original.perils),
                property_types=list(original.property_types),
                is_active=False,
                version=1,
            ),
        )

    async def toggle_active(self, tenant_id: str, definition_id: str) -> FlowDefinitionResult:
        current = await self._get_owned(tenant_id, definition_id)
        return await self.definition_repo.update_fields(definition_id, is_active=not current.is_active)

    async def _get_owned(self, tenant_id: str, definition_id: str) -> FlowDefinitionResult:
        definition = await self.get_definition(tenant_id, definition_id)
        if definition.is_system or definition.tenant_id != tenant_id:
            raise ValidationException(
                "System flow definitions are read-only; duplicate to customise",
                field="flow_definition_id",
            )
        return definition

    def _ensure_valid(self, flow_json: Any) -> None:
        result = self.validator.validate(flow_json)
        if not result.is_valid:
            raise FlowDefinitionValidationException([e.to_dict() for e in result.errors])
