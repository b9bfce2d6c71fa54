"""Tests for rule-based and AI gate strategies."""

from datetime import datetime, timezone

import pytest

from claimflow.application.dtos.flow_engine import MovementCompletionResult
from claimflow.application.services.gate_evaluator import (
    AIGateStrategy,
    GateContext,
    GateEvaluator,
    RuleGateStrategy,
    completion_evidence_types,
)
from claimflow.domain.entities.flow_definition import FlowDefinitionEntity
from claimflow.domain.entities.flow_instance import FlowInstanceEntity
from claimflow.domain.exceptions import AIResponseException
from claimflow.domain.value_objects.flow import GateDefinition
from claimflow.infrastructure.services import FlowPromptRenderer
from tests.conftest import WATER_FLOW_JSON
from tests.fakes import FakeLanguageModel


def _completion(movement_id: str, status: str = "completed", evidence: dict | None = None):
    return MovementCompletionResult(
        id=f"mc-{movement_id}",
        tenant_id="t1",
        flow_instance_id="fi-1",
        claim_id="c1",
        movement_key=f"p1:{movement_id}",
        phase_id="p1",
        movement_id=movement_id,
        status=status,
        skipped_required=False,
        completed_by=None,
        notes=None,
        evidence_data=evidence or {},
        completed_at=datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc),
    )


def _context(rules: dict, *, completions=(), completed=(), evidence_types=(), ai=False) -> GateContext:
    definition = FlowDefinitionEntity(
        id="def-1",
        tenant_id="t1",
        flow_key="water",
        name="Water",
        version=1,
        flow_json=WATER_FLOW_JSON,
    )
    instance = FlowInstanceEntity(
        id="fi-1",
        tenant_id="t1",
        claim_id="c1",
        flow_definition_id="def-1",
        current_phase_id="p1",
        completed_movement_keys={f"p1:{m}" for m in completed},
        context={"peril_type": "water"},
    )
    criteria = {"type": "ai", "ai_prompt_key": "missing.prompt"} if ai else {"type": "simple", "simple_rules": rules}
    gate = GateDefinition.from_dict(
        {"id": "g1", "name": "Exterior complete", "from_phase": "p1", "to_phase": "p2", "evaluation_criteria": criteria}
    )
    return GateContext(
        gate=gate,
        definition=definition,
        instance=instance,
        completions=list(completions),
        evidence_types=set(evidence_types),
    )


def test_completion_evidence_types_ignores_skips_and_empty_values() -> None:
    types = completion_evidence_types(
        [
            _completion("A", evidence={"photos": ["ph1"], "notes": []}),
            _completion("B", status="skipped", evidence={"audio_ids": ["au1"]}),
            _completion("C", evidence={"measurements": [{"id": "m1"}], "unknown": ["x"]}),
        ]
    )
    assert types == {"photo", "measurement"}


def test_rule_gate_passes_with_no_rules() -> None:
    decision = RuleGateStrategy().evaluate(_context({}))
    assert decision.passed is True
    assert decision.evaluation_type == "simple"


def test_rule_gate_min_completed_movements() -> None:
    ctx = _context({"minCompletedMovements": 2}, completions=[_completion("A")])
    decision = RuleGateStrategy().evaluate(ctx)
    assert decision.passed is False
    assert "Minimum 2 completed movements required, only 1 completed" in decision.reason


def test_rule_gate_min_completed_counts_distinct_completed_rows() -> None:
    ctx = _context(
        {"min_completed_movements": 2},
        completions=[_completion("A"), _completion("A"), _completion("B", status="skipped")],
    )
    assert RuleGateStrategy().evaluate(ctx).passed is False


def test_rule_gate_required_evidence_uses_normalized_types() -> None:
    rules = {"required_evidence": ["photos", "sketch"]}
    decision = RuleGateStrategy().evaluate(_context(rules, evidence_types={"photo"}))
    assert decision.passed is False
    assert decision.details["failures"] == ["Missing required evidence: sketch"]


def test_rule_gate_required_movements() -> None:
    rules = {"required_movements": ["A", "B"]}
    failed = RuleGateStrategy().evaluate(_context(rules, completed=["A"]))
    assert failed.details["failures"] == ["Required movement not completed: B"]
    passed = RuleGateStrategy().evaluate(_context(rules, completed=["A", "B"]))
    assert passed.passed is True


def test_rule_gate_all_required_condition() -> None:
    rules = {"condition": "all_required_movements_complete"}
    assert RuleGateStrategy().evaluate(_context(rules, completed=["A"])).passed is False
    assert RuleGateStrategy().evaluate(_context(rules, completed=["A", "B"])).passed is True


async def test_ai_gate_uses_model_verdict_and_falls_back_to_default_prompt() -> None:
    model = FakeLanguageModel({"passed": False, "reason": "Photos are blurry"})
    strategy = AIGateStrategy(model, FlowPromptRenderer())
    decision = await strategy.evaluate(_context({}, ai=True, completions=[_completion("A")]))
    assert decision.passed is False
    assert decision.reason == "Photos are blurry"
    assert decision.evaluation_type == "ai"
    assert decision.details["ai_assessed"] is True
    assert decision.details["prompt_key"] == "flow.gate_evaluation"
    assert "Exterior complete" in model.calls[0]["user"]
    assert model.calls[0]["temperature"] == 0.3


@pytest.mark.parametrize("fail_open", [True, False])
async def test_ai_gate_failure_follows_fail_policy(fail_open: bool) -> None:
    model = FakeLanguageModel(AIResponseException("timeout"))
    strategy = AIGateStrategy(model, FlowPromptRenderer(), fail_open=fail_open)
    decision = await strategy.evaluate(_context({}, ai=True))
    assert decision.passed is fail_open
    assert "timeout" in decision.reason
    assert decision.details["fallback"] is True


async def test_ai_gate_malformed_response_uses_fallback() -> None:
    model = FakeLanguageModel({"passed": "yes"})
    decision = await AIGateStrategy(model, FlowPromptRenderer(), fail_open=False).evaluate(
        _context({}, ai=True)
    )
    assert decision.passed is False
    assert decision.details["ai_assessed"] is False


async def test_ai_gate_without_model_is_not_configured() -> None:
    decision = await AIGateStrategy(None, FlowPromptRenderer()).evaluate(_context({}, ai=True))
    assert decision.passed is True
    assert "not configured" in decision.reason


async def test_evaluator_dispatches_on_evaluation_type() -> None:
    model = FakeLanguageModel({"passed": True, "reason": "ok"})
    evaluator = GateEvaluator(RuleGateStrategy(), AIGateStrategy(model, FlowPromptRenderer()))
    await evaluator.decide(_context({"required_movements": ["A"]}))
    assert model.calls == []
    decision = await evaluator.decide(_context({}, ai=True))
    assert decision.reason == "ok"
    assert len(model.calls) == 1
