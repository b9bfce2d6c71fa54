"""Flow instance lifecycle: start, pause, resume, cancel and lookup."""

from __future__ import annotations

from typing import Any

from claimflow.application.dtos.flow_definition import FlowSelection
from claimflow.application.dtos.flow_engine import FlowInstanceCreate, FlowInstanceResult
from claimflow.application.interfaces.repositories import (
    IFlowDefinitionRepository,
    IFlowInstanceRepository,
)
from claimflow.application.services.flow_instance_store import FlowInstanceStore
from claimflow.application.services.flow_selector import FlowSelector, to_definition_entity
from claimflow.domain.entities.flow_definition import FlowDefinitionEntity
from claimflow.domain.entities.flow_instance import FlowInstanceEntity, new_instance_state
from claimflow.domain.exceptions import ResourceNotFoundException, ValidationException
from claimflow.domain.value_objects.flow import normalize_peril
from claimflow.shared.logging import get_logger

logger = get_logger(__name__)


class FlowLifecycleService:
    """Starts flows for claims and moves instances between lifecycle states.

    At most one active instance exists per claim: starting a flow cancels
    every active or paused instance of the claim first.
    """

    def __init__(
        self,
        instance_repo: IFlowInstanceRepository,
        definition_repo: IFlowDefinitionRepository,
        selector: FlowSelector,
        store: FlowInstanceStore,
        *,
        default_property_type: str = "residential",
    ) -> None:
        self.instance_repo = instance_repo
        self.definition_repo = definition_repo
        self.selector = selector
        self.store = store
        self.default_property_type = default_property_type

    async def start_flow_for_claim(
        self,
        tenant_id: str,
        claim_id: str,
        peril_type: str,
        property_type: str | None = None,
        *,
        flow_definition_id: str | None = None,
        claim_context: dict[str, Any] | None = None,
        started_by: str | None = None,
    ) -> tuple[FlowInstanceResult, FlowSelection | None]:
        """Create an instance at phase 0 for the claim.

        Args:
            tenant_id: Tenant id.
            claim_id: Claim the inspection is for.
            peril_type: Claim peril; normalised before matching.
            property_type: Defaults to the configured default property type.
            flow_definition_id: Explicit definition; bypasses selection.
            claim_context: Extra claim facts stored in the instance context for AI prompts.
            started_by: Actor id recorded in the context.

        Returns:
            (created instance, selection or None when an explicit definition was given).

        Raises:
            ValidationException: Empty claim id or peril.
            NoFlowDefinitionException: Nothing matches and no generic flow exists.
            ResourceNotFoundException: Explicit definition not visible to tenant.
        """
        if not claim_id:
            raise ValidationException("claim_id is required", field="claim_id")
        if not peril_type and not flow_definition_id:
            raise ValidationException("peril_type is required", field="peril_type")
        property_type = property_type or self.default_property_type

        selection: FlowSelection | None = None
        if flow_definition_id:
            definition = await self.definition_repo.get_visible(tenant_id, flow_definition_id)
            if definition is None:
                raise ResourceNotFoundException("flow_definition", flow_definition_id)
        else:
            selection = await self.selector.select_flow(tenant_id, peril_type, property_type)
            definition = selection.definition

        await self._cancel_open_instances(tenant_id, claim_id, "Superseded by a new flow")

        phase_index, phase_id = new_instance_state(to_definition_entity(definition))
        context: dict[str, Any] = {
            "peril_type": normalize_peril(peril_type) if peril_type else None,
            "property_type": property_type,
            "flow_key": definition.flow_key,
            "flow_version": definition.version,
            "claim": claim_context or {},
        }
        if selection is not None:
            context["requires_selection"] = selection.requires_selection
            context["used_fallback"] = selection.used_fallback
        if started_by:
            context["started_by"] = started_by
        created = await self.instance_repo.create(
            tenant_id,
            FlowInstanceCreate(
                claim_id=claim_id,
                flow_definition_id=definition.id,
                current_phase_index=phase_index,
                current_phase_id=phase_id,
                context=context,
                started_by=started_by,
            ),
        )
        logger.info(
            "Started flow %s (%s v%d) for claim %s in tenant %s",
            created.id,
            definition.flow_key,
            definition.version,
            claim_id,
            tenant_id,
        )
        return created, selection

    async def get_current_flow(self, tenant_id: str, claim_id: str) -> FlowInstanceResult | None:
        return await self.instance_repo.get_current_for_claim(tenant_id, claim_id)

    async def get_flow_instance(self, tenant_id: str, instance_id: str) -> FlowInstanceResult:
        instance = await self.instance_repo.get_by_id_and_tenant(instance_id, tenant_id)
        if instance is None:
            raise ResourceNotFoundException("flow_instance", instance_id)
        return instance

    async def list_flows_for_claim(self, tenant_id: str, claim_id: str) -> list[FlowInstanceResult]:
        return await self.instance_repo.list_for_claim(tenant_id, claim_id)

    async def pause_flow(self, tenant_id: str, instance_id: str) -> FlowInstanceResult:
        async def pause(e: FlowInstanceEntity, d: FlowDefinitionEntity) -> None:
            e.pause()

        await self.store.mutate(tenant_id, instance_id, pause)
        return await self.get_flow_instance(tenant_id, instance_id)

    async def resume_flow(self, tenant_id: str, instance_id: str) -> FlowInstanceResult:
        async def resume(e: FlowInstanceEntity, d: FlowDefinitionEntity) -> None:
            e.resume()

        await self.store.mutate(tenant_id, instance_id, resume)
        return await self.get_flow_instance(tenant_id, instance_id)

    async def cancel_flow(
        self, tenant_id: str, instance_id: str, reason: str | None = None
    ) -> FlowInstanceResult:
        """Cancel an active or paused instance; the reason is kept in its context."""

        async def cancel(e: FlowInstanceEntity, d: FlowDefinitionEntity) -> None:
            e.cancel(reason)

        await self.store.mutate(tenant_id, instance_id, cancel)
        logger.info("Cancelled flow %s in tenant %s: %s", instance_id, tenant_id, reason)
        return await self.get_flow_instance(tenant_id, instance_id)

    async def cancel_current_flow(
        self, tenant_id: str, claim_id: str, reason: str | None = None
    ) -> int:
        """Cancel every active or paused instance of the claim; returns how many."""
        return await self._cancel_open_instances(tenant_id, claim_id, reason)

    async def _cancel_open_instances(self, tenant_id: str, claim_id: str, reason: str | None) -> int:
        open_instances = await self.instance_repo.list_open_for_claim(tenant_id, claim_id)
        for instance in open_instances:

            async def cancel(e: FlowInstanceEntity, d: FlowDefinitionEntity) -> None:
                if not e.status.is_terminal:
                    e.cancel(reason)

            await self.store.mutate(tenant_id, instance.id, cancel)
            logger.info("Cancelled prior flow %s for claim %s", instance.id, claim_id)
        return len(open_instances)
