"""Tests for FlowSelector (peril matching, version preference, generic fallback)."""

import pytest

from claimflow.application.services.flow_selector import FlowSelector
from claimflow.domain.exceptions import NoFlowDefinitionException
from tests.conftest import OTHER_TENANT_ID, TENANT_ID, WATER_FLOW_JSON
from tests.fakes import FakeFlowDefinitionRepository


@pytest.fixture
def definitions() -> FakeFlowDefinitionRepository:
    return FakeFlowDefinitionRepository()


@pytest.fixture
def selector(definitions: FakeFlowDefinitionRepository) -> FlowSelector:
    return FlowSelector(definitions, generic_flow_key="generic")


def _flow(primary: str | None) -> dict:
    flow = {**WATER_FLOW_JSON, "metadata": {"name": "Flow", "primary_peril": primary}}
    return flow


async def test_selects_highest_active_version(definitions, selector) -> None:
    definitions.add(TENANT_ID, "water", _flow("water"), perils=["water"], version=1)
    v2 = definitions.add(TENANT_ID, "water", _flow("water"), perils=["water"], version=2)
    definitions.add(TENANT_ID, "water", _flow("water"), perils=["water"], version=3, is_active=False)

    selection = await selector.select_flow(TENANT_ID, "Water")

    assert selection.definition.id == v2.id
    assert selection.requires_selection is False
    assert selection.used_fallback is False
    assert selection.peril_type == "water"


async def test_alias_peril_matches(definitions, selector) -> None:
    wind = definitions.add(TENANT_ID, "wind", _flow("wind_hail"), perils=["wind_hail"])
    selection = await selector.select_flow(TENANT_ID, "Hail")
    assert selection.definition.id == wind.id


async def test_multiple_keys_prefer_primary_peril_and_flag_selection(definitions, selector) -> None:
    definitions.add(TENANT_ID, "mold_remediation", _flow("mold"), perils=["mold", "water"])
    primary = definitions.add(TENANT_ID, "water", _flow("water"), perils=["water"])

    selection = await selector.select_flow(TENANT_ID, "water")

    assert selection.definition.id == primary.id
    assert selection.requires_selection is True
    assert [c.flow_key for c in selection.candidates] == ["water", "mold_remediation"]


async def test_system_definitions_are_candidates(definitions, selector) -> None:
    system = definitions.add(None, "fire", _flow("fire"), perils=["fire"], is_system=True)
    selection = await selector.select_flow(TENANT_ID, "fire")
    assert selection.definition.id == system.id


async def test_other_tenant_definitions_are_ignored(definitions, selector) -> None:
    definitions.add(OTHER_TENANT_ID, "water", _flow("water"), perils=["water"])
    with pytest.raises(NoFlowDefinitionException):
        await selector.select_flow(TENANT_ID, "water")


async def test_property_type_filter(definitions, selector) -> None:
    definitions.add(TENANT_ID, "water_commercial", _flow("water"), perils=["water"], property_types=["commercial"])
    residential = definitions.add(
        TENANT_ID, "water_residential", _flow("water"), perils=["water"], property_types=["residential"]
    )
    selection = await selector.select_flow(TENANT_ID, "water", "Residential")
    assert selection.definition.id == residential.id
    assert selection.requires_selection is False


async def test_falls_back_to_generic_flow(definitions, selector) -> None:
    generic = definitions.add(TENANT_ID, "generic", _flow(None))
    selection = await selector.select_flow(TENANT_ID, "earthquake")
    assert selection.definition.id == generic.id
    assert selection.used_fallback is True


async def test_no_match_and_no_generic_raises(definitions, selector) -> None:
    definitions.add(TENANT_ID, "water", _flow("water"), perils=["water"])
    with pytest.raises(NoFlowDefinitionException) as exc_info:
        await selector.select_flow(TENANT_ID, "earthquake", "residential")
    assert exc_info.value.error_code == "NO_FLOW_DEFINITION"
    assert exc_info.value.details["peril_type"] == "earthquake"
