"""Matches a claim's peril to an active flow definition."""

from __future__ import annotations

from claimflow.application.dtos.flow_definition import FlowDefinitionResult, FlowSelection
from claimflow.application.interfaces.repositories import IFlowDefinitionRepository
from claimflow.domain.entities.flow_definition import FlowDefinitionEntity
from claimflow.domain.exceptions import NoFlowDefinitionException
from claimflow.domain.value_objects.flow import normalize_peril
from claimflow.shared.logging import get_logger

logger = get_logger(__name__)


def to_definition_entity(result: FlowDefinitionResult) -> FlowDefinitionEntity:
    """Map FlowDefinitionResult (application DTO) to FlowDefinitionEntity (domain entity)."""
    return FlowDefinitionEntity(
        id=result.id,
        tenant_id=result.tenant_id,
        flow_key=result.flow_key,
        name=result.name,
        version=result.version,
        flow_json=result.flow_json,
        description=result.description,
        perils=list(result.perils),
        property_types=list(result.property_types),
        is_active=result.is_active,
        is_system=result.is_system,
    )


def _latest_per_key(definitions: list[FlowDefinitionResult]) -> list[FlowDefinitionResult]:
    latest: dict[str, FlowDefinitionResult] = {}
    for definition in definitions:
        current = latest.get(definition.flow_key)
        if current is None or definition.version > current.version:
            latest[definition.flow_key] = definition
    return list(latest.values())


class FlowSelector:
    """Selects the flow definition for a claim (peril match, highest version, generic fallback)."""

    def __init__(
        self,
        definition_repo: IFlowDefinitionRepository,
        *,
        generic_flow_key: str = "generic",
    ) -> None:
        self.definition_repo = definition_repo
        self.generic_flow_key = generic_flow_key

    async def select_flow(
        self,
        tenant_id: str,
        peril_type: str,
        property_type: str | None = None,
    ) -> FlowSelection:
        """Return the selected definition and the other candidates.

        Raises:
            NoFlowDefinitionException: No peril match and no active generic flow.
        """
        peril = normalize_peril(peril_type)
        active = await self.definition_repo.list_active(tenant_id)

        matched: list[tuple[FlowDefinitionResult, FlowDefinitionEntity]] = []
        for result in active:
            entity = to_definition_entity(result)
            if entity.matches_peril(peril) and entity.matches_property_type(property_type):
                matched.append((result, entity))

        primary_keys = {r.flow_key for r, e in matched if e.is_primary_peril(peril)}
        candidates = _latest_per_key([r for r, _ in matched])
        candidates.sort(key=lambda d: (d.flow_key not in primary_keys, -d.version, d.name))

        if candidates:
            requires_selection = len(candidates) > 1
            if requires_selection:
                logger.info(
                    "Peril %s matched %d flows for tenant %s; auto-selecting %s",
                    peril,
                    len(candidates),
                    tenant_id,
                    candidates[0].flow_key,
                )
            return FlowSelection(
                definition=candidates[0],
                candidates=candidates,
                requires_selection=requires_selection,
                used_fallback=False,
                peril_type=peril,
            )

        generic = _latest_per_key([d for d in active if d.flow_key == self.generic_flow_key])
        if not generic:
            raise NoFlowDefinitionException(peril, property_type)
        logger.info("No flow for peril %s (tenant %s); using %s", peril, tenant_id, self.generic_flow_key)
        return FlowSelection(
            definition=generic[0],
            candidates=generic,
            requires_selection=False,
            used_fallback=True,
            peril_type=peril,
        )
