"""FlowExecutionService tests: executor scan, completion, skip, gates, finalization, locking."""

import copy
from dataclasses import replace

import pytest

from claimflow.domain.enums import NextStepKind
from claimflow.domain.exceptions import (
    FlowInstanceConflictException,
    FlowStateException,
    ResourceNotFoundException,
)
from tests.conftest import CLAIM_ID, OTHER_TENANT_ID, TENANT_ID, WATER_FLOW_JSON
from tests.fakes import FakeLanguageModel, FlowEngine


async def _state(repos, instance):
    return await repos.instances.get_by_id_and_tenant(instance.id, TENANT_ID)


async def test_next_movement_starts_with_first_required(engine, instance) -> None:
    result = await engine.execution.get_next_movement(TENANT_ID, instance.id)
    assert result.kind == NextStepKind.MOVEMENT
    assert result.movement.key == "p1:A"
    assert result.phase.id == "p1"
    assert result.flow_completed is False


async def test_peek_next_movement_leaves_state_untouched(engine, repos, instance) -> None:
    before = await _state(repos, instance)
    result = await engine.execution.peek_next_movement(TENANT_ID, instance.id)
    after = await _state(repos, instance)

    assert result.movement.key == "p1:A"
    assert after.version == before.version
    assert after.current_phase_index == before.current_phase_index


async def test_completing_required_movements_advances_without_optional(engine, repos, instance) -> None:
    first = await engine.execution.complete_movement(TENANT_ID, instance.id, "A", completed_by="u1")
    assert first.phase_advanced is False
    assert first.completion.status == "completed"

    second = await engine.execution.complete_movement(TENANT_ID, instance.id, "B")
    assert second.phase_advanced is True
    assert second.gate_outcome.passed is True
    assert second.gate_outcome.current_phase_id == "p2"

    state = await _state(repos, instance)
    assert state.current_phase_id == "p2"
    assert state.current_phase_index == 1
    assert set(state.completed_movement_keys) == {"p1:A", "p1:B"}
    assert [e.result for e in repos.gate_evaluations.rows] == ["passed"]


async def test_complete_is_idempotent_on_state(engine, repos, instance) -> None:
    await engine.execution.complete_movement(TENANT_ID, instance.id, "A")
    version = (await _state(repos, instance)).version
    again = await engine.execution.complete_movement(TENANT_ID, instance.id, "A", notes="retry")
    assert again.already_completed is True
    state = await _state(repos, instance)
    assert state.completed_movement_keys == ["p1:A"]
    assert state.version == version
    # Both calls are kept in the audit log.
    assert len(repos.completions.rows) == 2


async def test_complete_movement_from_other_phase_is_rejected(engine, instance) -> None:
    with pytest.raises(FlowStateException):
        await engine.execution.complete_movement(TENANT_ID, instance.id, "D")


async def test_complete_unknown_movement_not_found(engine, instance) -> None:
    with pytest.raises(ResourceNotFoundException):
        await engine.execution.complete_movement(TENANT_ID, instance.id, "Z")


async def test_other_tenant_cannot_see_instance(engine, instance) -> None:
    with pytest.raises(ResourceNotFoundException):
        await engine.execution.get_next_movement(OTHER_TENANT_ID, instance.id)


async def test_skip_required_without_force_changes_nothing(engine, repos, instance) -> None:
    result = await engine.execution.skip_movement(TENANT_ID, instance.id, "A", reason="no access")
    assert result.skipped is False
    assert result.was_required is True
    assert "required" in result.warning
    state = await _state(repos, instance)
    assert state.current_phase_id == "p1"
    assert state.completed_movement_keys == []
    assert repos.completions.rows == []


async def test_skip_optional_movement(engine, repos, instance) -> None:
    result = await engine.execution.skip_movement(TENANT_ID, instance.id, "C", reason="no gutters")
    assert result.skipped is True
    assert result.was_required is False
    assert result.warning is None
    assert result.completion.status == "skipped"
    assert "p1:C" in (await _state(repos, instance)).completed_movement_keys


async def test_forced_skip_blocks_finalization_until_completed(engine, repos, instance) -> None:
    skipped = await engine.execution.skip_movement(TENANT_ID, instance.id, "A", force=True, skipped_by="u1")
    assert skipped.skipped is True
    assert skipped.completion.skipped_required is True

    await engine.execution.complete_movement(TENANT_ID, instance.id, "B")
    await engine.execution.complete_movement(TENANT_ID, instance.id, "D")
    state = await _state(repos, instance)
    assert state.status == "completed"

    finalization = await engine.execution.can_finalize_flow(TENANT_ID, instance.id)
    assert finalization.can_finalize is False
    assert [(b.movement_key, b.reason) for b in finalization.blockers] == [("p1:A", "skipped_required")]


async def test_can_finalize_lists_missing_required(engine, instance) -> None:
    await engine.execution.complete_movement(TENANT_ID, instance.id, "A")
    result = await engine.execution.can_finalize_flow(TENANT_ID, instance.id)
    assert result.can_finalize is False
    assert [b.movement_key for b in result.blockers] == ["p1:B", "p2:D"]
    assert {b.reason for b in result.blockers} == {"missing_required"}


async def test_full_run_completes_and_can_finalize(engine, repos, instance) -> None:
    for movement_id in ("A", "B", "D"):
        await engine.execution.complete_movement(TENANT_ID, instance.id, movement_id)
    state = await _state(repos, instance)
    assert state.status == "completed"
    assert state.completed_at is not None
    assert state.current_phase_index == 2
    assert (await engine.execution.can_finalize_flow(TENANT_ID, instance.id)).can_finalize is True
    result = await engine.execution.get_next_movement(TENANT_ID, instance.id)
    assert result.kind == NextStepKind.COMPLETE
    assert result.flow_completed is True


async def test_blocking_gate_failure_holds_phase(repos, water_definition, engine) -> None:
    flow_json = copy.deepcopy(WATER_FLOW_JSON)
    flow_json["gates"][0]["evaluation_criteria"]["simple_rules"] = {"required_evidence": ["photo"]}
    strict = repos.definitions.add(TENANT_ID, "water_strict", flow_json, perils=["water"])
    instance, _ = await engine.lifecycle.start_flow_for_claim(
        TENANT_ID, CLAIM_ID, "water", flow_definition_id=strict.id
    )

    await engine.execution.complete_movement(TENANT_ID, instance.id, "A")
    result = await engine.execution.complete_movement(TENANT_ID, instance.id, "B")

    assert result.phase_advanced is False
    assert result.gate_pending is True
    assert result.gate_outcome.gate_blocked is True
    assert "Missing required evidence: photo" in result.gate_outcome.reason
    assert (await _state(repos, instance)).current_phase_id == "p1"
    next_step = await engine.execution.get_next_movement(TENANT_ID, instance.id)
    assert next_step.kind == NextStepKind.MOVEMENT
    assert next_step.movement.id == "C"


async def test_blocking_gate_passes_once_evidence_attached(repos, engine) -> None:
    flow_json = copy.deepcopy(WATER_FLOW_JSON)
    flow_json["gates"][0]["evaluation_criteria"]["simple_rules"] = {"required_evidence": ["photo"]}
    strict = repos.definitions.add(TENANT_ID, "water_strict", flow_json, perils=["water"])
    instance, _ = await engine.lifecycle.start_flow_for_claim(
        TENANT_ID, CLAIM_ID, "water", flow_definition_id=strict.id
    )
    await engine.execution.complete_movement(TENANT_ID, instance.id, "A")
    await engine.execution.complete_movement(TENANT_ID, instance.id, "B")
    await engine.evidence.attach_evidence(TENANT_ID, instance.id, "A", "photo", "ph-1")

    outcome = await engine.execution.evaluate_gate(TENANT_ID, instance.id, "g1")

    assert outcome.passed is True
    assert outcome.phase_advanced is True
    assert outcome.current_phase_id == "p2"
    assert [e.result for e in repos.gate_evaluations.rows] == ["failed", "passed"]


async def test_advisory_gate_failure_still_advances(repos, engine) -> None:
    flow_json = copy.deepcopy(WATER_FLOW_JSON)
    flow_json["gates"][0]["gate_type"] = "advisory"
    flow_json["gates"][0]["evaluation_criteria"]["simple_rules"] = {"min_completed_movements": 3}
    advisory = repos.definitions.add(TENANT_ID, "water_advisory", flow_json, perils=["water"])
    instance, _ = await engine.lifecycle.start_flow_for_claim(
        TENANT_ID, CLAIM_ID, "water", flow_definition_id=advisory.id
    )
    await engine.execution.complete_movement(TENANT_ID, instance.id, "A")
    result = await engine.execution.complete_movement(TENANT_ID, instance.id, "B")

    assert result.gate_outcome.passed is False
    assert result.gate_outcome.advisory is True
    assert result.gate_outcome.gate_blocked is False
    assert result.phase_advanced is True


async def test_ai_gate_fail_closed_blocks(repos) -> None:
    flow_json = copy.deepcopy(WATER_FLOW_JSON)
    flow_json["gates"][0]["evaluation_criteria"] = {"type": "ai", "ai_prompt_key": "flow.gate_evaluation"}
    ai_def = repos.definitions.add(TENANT_ID, "water_ai", flow_json, perils=["water"])
    engine = FlowEngine(repos, language_model=FakeLanguageModel(), gate_ai_fail_open=False)
    instance, _ = await engine.lifecycle.start_flow_for_claim(
        TENANT_ID, CLAIM_ID, "water", flow_definition_id=ai_def.id
    )
    await engine.execution.complete_movement(TENANT_ID, instance.id, "A")
    result = await engine.execution.complete_movement(TENANT_ID, instance.id, "B")

    assert result.gate_outcome.passed is False
    assert result.gate_outcome.evaluation_type == "ai"
    assert result.phase_advanced is False
    assert repos.gate_evaluations.rows[0].details["fallback"] is True


async def test_gate_not_auto_evaluated_when_disabled(repos, water_definition) -> None:
    engine = FlowEngine(repos, auto_evaluate_gates=False)
    instance, _ = await engine.lifecycle.start_flow_for_claim(TENANT_ID, CLAIM_ID, "water")
    await engine.execution.complete_movement(TENANT_ID, instance.id, "A")
    result = await engine.execution.complete_movement(TENANT_ID, instance.id, "B")
    assert result.gate_pending is True
    assert result.gate_outcome is None
    assert repos.gate_evaluations.rows == []

    await engine.execution.complete_movement(TENANT_ID, instance.id, "C")
    step = await engine.execution.get_next_movement(TENANT_ID, instance.id)
    assert step.kind == NextStepKind.GATE
    assert step.gate.id == "g1"
    assert step.phase_advanced is False
    assert repos.gate_evaluations.rows == []
    assert (await _state(repos, instance)).current_phase_id == "p1"

    advanced = await engine.execution.advance_to_next_phase(TENANT_ID, instance.id)
    assert advanced.phase_advanced is True
    assert advanced.current_phase.id == "p2"


async def test_evaluate_gate_with_missing_required_records_failure(engine, repos, instance) -> None:
    outcome = await engine.execution.evaluate_gate(TENANT_ID, instance.id, "g1")
    assert outcome.passed is False
    assert outcome.gate_blocked is True
    assert "A" in outcome.reason
    assert repos.gate_evaluations.rows[0].result == "failed"


async def test_evaluate_unknown_gate_not_found(engine, instance) -> None:
    with pytest.raises(ResourceNotFoundException):
        await engine.execution.evaluate_gate(TENANT_ID, instance.id, "g9")


async def test_advance_with_missing_required_raises(engine, instance) -> None:
    with pytest.raises(FlowStateException) as exc_info:
        await engine.execution.advance_to_next_phase(TENANT_ID, instance.id)
    assert exc_info.value.details["missing"] == ["p1:A", "p1:B"]


async def test_paused_flow_rejects_completion(engine, instance) -> None:
    await engine.lifecycle.pause_flow(TENANT_ID, instance.id)
    with pytest.raises(FlowStateException):
        await engine.execution.complete_movement(TENANT_ID, instance.id, "A")
    peek = await engine.execution.get_next_movement(TENANT_ID, instance.id)
    assert peek.movement.id == "A"


async def test_navigation_and_previous_movement(engine, repos, instance) -> None:
    await engine.execution.complete_movement(TENANT_ID, instance.id, "A")
    await engine.execution.complete_movement(TENANT_ID, instance.id, "B")
    result = await engine.execution.go_to_movement(TENANT_ID, instance.id, "D")
    assert result.phase.id == "p2"
    assert (await _state(repos, instance)).current_movement_key == "p2:D"
    current = await engine.execution.get_current_movement(TENANT_ID, instance.id)
    assert current.id == "D"
    previous = await engine.execution.get_previous_movement(TENANT_ID, instance.id)
    assert previous.id == "C"

    back = await engine.execution.go_to_movement(TENANT_ID, instance.id, "B", phase_id="p1")
    assert back.movement.key == "p1:B"
    assert (await engine.execution.get_current_phase(TENANT_ID, instance.id)).id == "p1"


async def test_navigation_cannot_skip_ahead_of_current_phase(engine, repos, instance) -> None:
    with pytest.raises(FlowStateException):
        await engine.execution.go_to_movement(TENANT_ID, instance.id, "D")
    state = await _state(repos, instance)
    assert state.current_phase_id == "p1"
    assert state.current_movement_key is None
    assert state.status == "active"


async def test_phase_index_never_decreases_on_completion(engine, repos, instance) -> None:
    seen = [(await _state(repos, instance)).current_phase_index]
    for movement_id in ("A", "C", "B", "D"):
        await engine.execution.complete_movement(TENANT_ID, instance.id, movement_id)
        seen.append((await _state(repos, instance)).current_phase_index)
    assert seen == sorted(seen)


async def test_conflicting_write_is_reapplied(engine, repos, instance) -> None:
    def other_request(row):
        return replace(row, completed_movement_keys=[*row.completed_movement_keys, "p1:C"])

    repos.instances.concurrent_writers.append(other_request)
    await engine.execution.complete_movement(TENANT_ID, instance.id, "A")

    state = await _state(repos, instance)
    assert set(state.completed_movement_keys) == {"p1:A", "p1:C"}
    assert state.version == 3


async def test_conflict_surfaces_after_max_attempts(repos, water_definition) -> None:
    engine = FlowEngine(repos, max_attempts=2)
    instance, _ = await engine.lifecycle.start_flow_for_claim(TENANT_ID, CLAIM_ID, "water")
    repos.instances.concurrent_writers.extend([lambda row: row, lambda row: row])
    with pytest.raises(FlowInstanceConflictException):
        await engine.execution.complete_movement(TENANT_ID, instance.id, "A")
    assert repos.completions.rows == []
