"""FlowDefinitionService tests: create/version, update, delete, duplicate, toggle."""

import copy

import pytest

from claimflow.application.dtos.flow_definition import (
    FlowDefinitionCreate,
    FlowDefinitionUpdate,
)
from claimflow.domain.exceptions import (
    FlowDefinitionInUseException,
    FlowDefinitionValidationException,
    ResourceNotFoundException,
    ValidationException,
)
from tests.conftest import OTHER_TENANT_ID, TENANT_ID, WATER_FLOW_JSON


def _create(**overrides) -> FlowDefinitionCreate:
    data = {
        "flow_key": "Water Residential",
        "name": "Water damage",
        "flow_json": copy.deepcopy(WATER_FLOW_JSON),
        "perils": ["Water Damage", "mold"],
        "property_types": [" Residential "],
    }
    data.update(overrides)
    return FlowDefinitionCreate(**data)


async def test_create_normalizes_key_perils_and_property_types(engine) -> None:
    created = await engine.definitions.create_definition(TENANT_ID, _create())
    assert created.flow_key == "water_residential"
    assert created.version == 1
    assert created.perils == ["water", "mold"]
    assert created.property_types == ["residential"]
    assert created.tenant_id == TENANT_ID
    assert created.is_system is False


async def test_create_same_key_gets_next_version(engine) -> None:
    await engine.definitions.create_definition(TENANT_ID, _create())
    second = await engine.definitions.create_definition(TENANT_ID, _create())
    assert second.version == 2


async def test_create_invalid_flow_json_raises(engine) -> None:
    with pytest.raises(FlowDefinitionValidationException) as exc_info:
        await engine.definitions.create_definition(TENANT_ID, _create(flow_json={"phases": []}))
    assert exc_info.value.error_code == "FLOW_DEFINITION_INVALID"
    assert exc_info.value.details["errors"]


async def test_create_key_without_letters_rejected(engine) -> None:
    with pytest.raises(ValidationException):
        await engine.definitions.create_definition(TENANT_ID, _create(flow_key="!!!"))


async def test_update_metadata_in_place(engine) -> None:
    created = await engine.definitions.create_definition(TENANT_ID, _create())
    updated = await engine.definitions.update_definition(
        TENANT_ID, created.id, FlowDefinitionUpdate(name="Renamed", perils=["Flooding"])
    )
    assert updated.id == created.id
    assert updated.name == "Renamed"
    assert updated.perils == ["flood"]
    assert updated.version == 1


async def test_update_flow_json_creates_new_version(engine) -> None:
    created = await engine.definitions.create_definition(TENANT_ID, _create())
    flow_json = copy.deepcopy(WATER_FLOW_JSON)
    flow_json["phases"][0]["name"] = "Outside"
    updated = await engine.definitions.update_definition(
        TENANT_ID, created.id, FlowDefinitionUpdate(flow_json=flow_json)
    )
    assert updated.id != created.id
    assert updated.version == 2
    assert updated.flow_key == created.flow_key
    assert updated.name == created.name
    # The old version row is untouched.
    assert (await engine.definitions.get_definition(TENANT_ID, created.id)).flow_json["phases"][0]["name"] == "Exterior"


async def test_system_definition_is_read_only(engine, repos) -> None:
    system = repos.definitions.add(None, "generic", WATER_FLOW_JSON, is_system=True)
    with pytest.raises(ValidationException):
        await engine.definitions.update_definition(TENANT_ID, system.id, FlowDefinitionUpdate(name="x"))
    with pytest.raises(ValidationException):
        await engine.definitions.delete_definition(TENANT_ID, system.id)


async def test_other_tenant_definition_not_found(engine, repos) -> None:
    foreign = repos.definitions.add(OTHER_TENANT_ID, "water", WATER_FLOW_JSON)
    with pytest.raises(ResourceNotFoundException):
        await engine.definitions.get_definition(TENANT_ID, foreign.id)


async def test_delete_in_use_definition_rejected(engine, water_definition, instance) -> None:
    with pytest.raises(FlowDefinitionInUseException) as exc_info:
        await engine.definitions.delete_definition(TENANT_ID, water_definition.id)
    assert exc_info.value.details["instance_count"] == 1


async def test_delete_unused_definition(engine, repos) -> None:
    created = await engine.definitions.create_definition(TENANT_ID, _create())
    await engine.definitions.delete_definition(TENANT_ID, created.id)
    assert created.id not in repos.definitions.rows


async def test_duplicate_system_definition(engine, repos) -> None:
    system = repos.definitions.add(None, "generic", WATER_FLOW_JSON, is_system=True, perils=["water"])
    copy_ = await engine.definitions.duplicate_definition(TENANT_ID, system.id, "My Water Flow")
    assert copy_.tenant_id == TENANT_ID
    assert copy_.flow_key == "my_water_flow"
    assert copy_.version == 1
    assert copy_.is_active is False
    assert copy_.flow_json["metadata"]["name"] == "My Water Flow"
    assert system.flow_json["metadata"]["name"] == "Water damage inspection"

    again = await engine.definitions.duplicate_definition(TENANT_ID, system.id, "My Water Flow")
    assert again.flow_key == "my_water_flow_2"


async def test_toggle_active(engine) -> None:
    created = await engine.definitions.create_definition(TENANT_ID, _create())
    toggled = await engine.definitions.toggle_active(TENANT_ID, created.id)
    assert toggled.is_active is False
    listed = await engine.definitions.list_definitions(TENANT_ID)
    assert created.id not in [d.id for d in listed]
    listed_all = await engine.definitions.list_definitions(TENANT_ID, include_inactive=True)
    assert created.id in [d.id for d in listed_all]


def test_validate_and_template_are_synchronous(engine) -> None:
    template = engine.definitions.get_empty_template()
    assert engine.definitions.validate_flow_json(template).is_valid is True
    assert engine.definitions.validate_flow_json("nope").is_valid is False
