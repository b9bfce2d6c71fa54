"""Tests for FlowJsonValidator (JSON Schema structure plus semantic rules)."""

import copy

import pytest

from claimflow.application.services.flow_json_validator import (
    FlowJsonValidator,
    get_empty_template,
)
from tests.conftest import WATER_FLOW_JSON


@pytest.fixture
def validator() -> FlowJsonValidator:
    return FlowJsonValidator()


def _messages(issues) -> list[str]:
    return [i.message for i in issues]


def test_valid_flow_has_no_errors(validator: FlowJsonValidator) -> None:
    result = validator.validate(WATER_FLOW_JSON)
    assert result.is_valid is True
    assert result.errors == []


def test_empty_template_is_valid(validator: FlowJsonValidator) -> None:
    result = validator.validate(get_empty_template())
    assert result.is_valid is True
    # Template leaves primary_peril for the author to fill in.
    assert "metadata.primary_peril" in [w.path for w in result.warnings]


def test_non_object_is_rejected(validator: FlowJsonValidator) -> None:
    result = validator.validate(["not", "an", "object"])
    assert result.is_valid is False
    assert _messages(result.errors) == ["Flow JSON must be an object"]


def test_missing_required_sections_reported_with_paths(validator: FlowJsonValidator) -> None:
    result = validator.validate({"schema_version": "1.0", "metadata": {}})
    assert result.is_valid is False
    messages = " ".join(_messages(result.errors))
    assert "'phases' is a required property" in messages
    assert "'name' is a required property" in messages


def test_duplicate_phase_and_movement_ids(validator: FlowJsonValidator) -> None:
    flow = copy.deepcopy(WATER_FLOW_JSON)
    flow["phases"][1]["id"] = "p1"
    flow["phases"][0]["movements"][1]["id"] = "A"
    result = validator.validate(flow)
    assert result.is_valid is False
    messages = _messages(result.errors)
    assert "Duplicate phase ID: p1" in messages
    assert "Duplicate movement ID in phase p1: A" in messages


def test_movement_id_reused_across_phases_is_a_warning(validator: FlowJsonValidator) -> None:
    flow = copy.deepcopy(WATER_FLOW_JSON)
    flow["phases"][1]["movements"][0]["id"] = "A"
    result = validator.validate(flow)
    assert result.is_valid is True
    assert "Movement ID A is also used in phase p1" in _messages(result.warnings)


def test_invalid_evidence_and_quantities(validator: FlowJsonValidator) -> None:
    flow = copy.deepcopy(WATER_FLOW_JSON)
    flow["phases"][0]["movements"][0]["evidence_requirements"] = [
        {"type": "video", "quantity_min": 1},
        {"type": "photo", "quantity_min": 3, "quantity_max": 1},
    ]
    result = validator.validate(flow)
    paths = [e.path for e in result.errors]
    assert "phases[0].movements[0].evidence_requirements[0].type" in paths
    assert "phases[0].movements[0].evidence_requirements[1]" in paths


def test_gate_referencing_unknown_phase(validator: FlowJsonValidator) -> None:
    flow = copy.deepcopy(WATER_FLOW_JSON)
    flow["gates"][0]["to_phase"] = "p9"
    result = validator.validate(flow)
    assert "Gate g1 references non-existent phase: p9" in _messages(result.errors)


def test_gate_cycle_detected(validator: FlowJsonValidator) -> None:
    flow = copy.deepcopy(WATER_FLOW_JSON)
    flow["gates"].append(
        {
            "id": "g2",
            "from_phase": "p2",
            "to_phase": "p1",
            "evaluation_criteria": {"type": "simple", "simple_rules": {"min_completed_movements": 1}},
        }
    )
    result = validator.validate(flow)
    assert "Circular dependency detected in gates" in _messages(result.errors)


def test_invalid_gate_and_criticality_values(validator: FlowJsonValidator) -> None:
    flow = copy.deepcopy(WATER_FLOW_JSON)
    flow["gates"][0]["gate_type"] = "strict"
    flow["gates"][0]["evaluation_criteria"]["type"] = "magic"
    flow["phases"][0]["movements"][0]["criticality"] = "urgent"
    result = validator.validate(flow)
    messages = _messages(result.errors)
    assert "Invalid gate type: strict" in messages
    assert "Invalid evaluation type: magic" in messages
    assert "Movement A has invalid criticality: urgent" in messages


def test_authoring_gaps_are_warnings(validator: FlowJsonValidator) -> None:
    flow = copy.deepcopy(WATER_FLOW_JSON)
    del flow["phases"][0]["movements"][2]["guidance"]
    flow["gates"][0]["evaluation_criteria"] = {"type": "ai"}
    result = validator.validate(flow)
    assert result.is_valid is True
    messages = _messages(result.warnings)
    assert "Movement C is missing guidance" in messages
    assert "AI gate g1 should have ai_prompt_key" in messages
