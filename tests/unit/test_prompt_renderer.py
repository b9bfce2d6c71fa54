"""FlowPromptRenderer: built-in flow prompts render with their temperatures."""

import pytest

from claimflow.infrastructure.services import FlowPromptRenderer


@pytest.fixture
def renderer() -> FlowPromptRenderer:
    return FlowPromptRenderer()


def test_gate_prompt_includes_context(renderer: FlowPromptRenderer) -> None:
    system, user, temperature = renderer.render(
        "flow.gate_evaluation",
        {
            "gate": {"id": "g1", "name": "Exterior complete", "description": None, "criteria": {"type": "ai"}},
            "flow": {"name": "Water", "phase_id": "p1"},
            "claim": {"peril_type": "water"},
            "completed_movements": [{"movement_key": "p1:A"}],
            "evidence_types": ["photo", "note"],
        },
    )
    assert "JSON" in system
    assert "Exterior complete (g1)" in user
    assert "photo, note" in user
    assert "p1:A" in user
    assert temperature == 0.3


def test_missing_evidence_types_render_as_none(renderer: FlowPromptRenderer) -> None:
    _, user, _ = renderer.render(
        "flow.gate_evaluation",
        {
            "gate": {"id": "g1", "name": "Gate", "criteria": {}},
            "flow": {"name": "Water", "phase_id": "p1"},
            "claim": {},
            "completed_movements": [],
            "evidence_types": [],
        },
    )
    assert "Evidence types captured: none" in user


def test_unknown_prompt_key(renderer: FlowPromptRenderer) -> None:
    with pytest.raises(KeyError):
        renderer.render("flow.unknown", {})
