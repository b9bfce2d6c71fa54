"""Gate evaluation strategies (rule-based and AI-based).

Strategies only produce a verdict (GateDecision); applying it to the
instance (advance, record, block) is done by the execution use case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from claimflow.application.dtos.flow_engine import GateDecision, MovementCompletionResult
from claimflow.application.interfaces.services import ILanguageModel, IPromptRenderer
from claimflow.domain.entities.flow_definition import FlowDefinitionEntity
from claimflow.domain.entities.flow_instance import FlowInstanceEntity
from claimflow.domain.enums import CompletionStatus, GateEvaluationType
from claimflow.domain.exceptions import AIResponseException
from claimflow.domain.value_objects.flow import (
    GateDefinition,
    movement_key,
    normalize_evidence_type,
)
from claimflow.shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_GATE_PROMPT_KEY = "flow.gate_evaluation"
ALL_REQUIRED_COMPLETE = "all_required_movements_complete"


@dataclass(frozen=True)
class GateContext:
    """Everything a strategy may look at; completions are limited to the gate's from_phase."""

    gate: GateDefinition
    definition: FlowDefinitionEntity
    instance: FlowInstanceEntity
    completions: list[MovementCompletionResult]
    evidence_types: set[str] = field(default_factory=set)


def _rule(rules: dict[str, Any], snake: str, camel: str) -> Any:
    return rules.get(snake, rules.get(camel))


def completion_evidence_types(completions: list[MovementCompletionResult]) -> set[str]:
    """Evidence type tags present in the inline evidence blobs of completed rows."""
    types: set[str] = set()
    for completion in completions:
        if completion.status != CompletionStatus.COMPLETED.value:
            continue
        for key, value in (completion.evidence_data or {}).items():
            if not value:
                continue
            evidence_type = normalize_evidence_type(key)
            if evidence_type is not None:
                types.add(evidence_type.value)
    return types


class RuleGateStrategy:
    """Static rule check; fails closed when any configured rule is not met."""

    def evaluate(self, ctx: GateContext) -> GateDecision:
        rules = ctx.gate.rules
        failures: list[str] = []
        completed_keys = {
            c.movement_key
            for c in ctx.completions
            if c.status == CompletionStatus.COMPLETED.value
        }

        min_completed = _rule(rules, "min_completed_movements", "minCompletedMovements")
        if min_completed:
            if len(completed_keys) < int(min_completed):
                failures.append(
                    f"Minimum {int(min_completed)} completed movements required, "
                    f"only {len(completed_keys)} completed"
                )

        required_evidence = _rule(rules, "required_evidence", "requiredEvidence") or []
        present = ctx.evidence_types
        for required in required_evidence:
            normalized = normalize_evidence_type(str(required))
            tag = normalized.value if normalized else str(required)
            if tag not in present:
                failures.append(f"Missing required evidence: {required}")

        required_movements = _rule(rules, "required_movements", "requiredMovements") or []
        for movement_id in required_movements:
            if movement_key(ctx.gate.from_phase, str(movement_id)) not in ctx.instance.completed_movement_keys:
                failures.append(f"Required movement not completed: {movement_id}")

        if rules.get("condition") == ALL_REQUIRED_COMPLETE:
            phase = ctx.definition.get_phase(ctx.gate.from_phase)
            if phase is not None:
                missing = ctx.instance.missing_required(ctx.definition, phase)
                if missing:
                    failures.append(
                        "Required movements not completed: " + ", ".join(m.id for m in missing)
                    )

        if failures:
            return GateDecision(
                passed=False,
                reason="; ".join(failures),
                evaluation_type=GateEvaluationType.SIMPLE.value,
                details={"failures": failures},
            )
        return GateDecision(
            passed=True,
            reason="All gate rules satisfied",
            evaluation_type=GateEvaluationType.SIMPLE.value,
        )


class AIGateStrategy:
    """Asks the language model for ``{passed, reason}``.

    On any model failure the configured policy decides: fail_open=True
    passes the gate, False blocks it. Either way the reason says so.
    """

    def __init__(
        self,
        language_model: ILanguageModel | None,
        prompt_renderer: IPromptRenderer,
        *,
        fail_open: bool = True,
        model: str | None = None,
    ) -> None:
        self.language_model = language_model
        self.prompt_renderer = prompt_renderer
        self.fail_open = fail_open
        self.model = model

    async def evaluate(self, ctx: GateContext) -> GateDecision:
        prompt_key = ctx.gate.ai_prompt_key or DEFAULT_GATE_PROMPT_KEY
        if self.language_model is None:
            return self._fallback(ctx, "AI evaluation is not configured", prompt_key)
        if not self.prompt_renderer.has_prompt(prompt_key):
            prompt_key = DEFAULT_GATE_PROMPT_KEY
        system_prompt, user_prompt, temperature = self.prompt_renderer.render(
            prompt_key, self._prompt_context(ctx)
        )
        try:
            response = await self.language_model.complete_json(
                system_prompt, user_prompt, temperature=temperature, model=self.model
            )
            passed = response.get("passed")
            if not isinstance(passed, bool):
                raise AIResponseException(
                    "Gate evaluation response is missing boolean 'passed'", prompt_key
                )
        except AIResponseException as exc:
            logger.warning(
                "AI gate evaluation failed for gate %s (instance %s): %s",
                ctx.gate.id,
                ctx.instance.id,
                exc.message,
            )
            return self._fallback(ctx, exc.message, prompt_key)
        reason = response.get("reason")
        return GateDecision(
            passed=passed,
            reason=str(reason) if reason is not None else None,
            evaluation_type=GateEvaluationType.AI.value,
            details={"prompt_key": prompt_key, "ai_assessed": True},
        )

    def _fallback(self, ctx: GateContext, error: str, prompt_key: str) -> GateDecision:
        if self.fail_open:
            reason = f"AI evaluation unavailable ({error}); gate passed by default"
        else:
            reason = f"AI evaluation unavailable ({error}); gate blocked until it can be evaluated"
        return GateDecision(
            passed=self.fail_open,
            reason=reason,
            evaluation_type=GateEvaluationType.AI.value,
            details={"prompt_key": prompt_key, "ai_assessed": False, "fallback": True},
        )

    @staticmethod
    def _prompt_context(ctx: GateContext) -> dict[str, Any]:
        names = {m.key: m.name for m in ctx.instance.all_movements(ctx.definition)}
        return {
            "gate": {
                "id": ctx.gate.id,
                "name": ctx.gate.name,
                "description": ctx.gate.description,
                "criteria": ctx.gate.rules,
            },
            "flow": {
                "name": ctx.definition.name,
                "flow_key": ctx.definition.flow_key,
                "phase_id": ctx.gate.from_phase,
            },
            "claim": ctx.instance.context,
            "completed_movements": [
                {
                    "movement_key": c.movement_key,
                    "name": names.get(c.movement_key),
                    "status": c.status,
                    "notes": c.notes,
                    "evidence": c.evidence_data,
                }
                for c in ctx.completions
            ],
            "evidence_types": sorted(ctx.evidence_types),
        }


class GateEvaluator:
    """Dispatches to the strategy named by the gate's evaluation type."""

    def __init__(self, rule_strategy: RuleGateStrategy, ai_strategy: AIGateStrategy) -> None:
        self.rule_strategy = rule_strategy
        self.ai_strategy = ai_strategy

    async def decide(self, ctx: GateContext) -> GateDecision:
        if ctx.gate.evaluation_type == GateEvaluationType.AI:
            return await self.ai_strategy.evaluate(ctx)
        return self.rule_strategy.evaluate(ctx)
