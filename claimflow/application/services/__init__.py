"""Application services: flow validation, selection, gates, evidence and instance storage."""

from claimflow.application.services.evidence_validator import EvidenceAggregator, EvidenceValidator
from claimflow.application.services.flow_instance_store import FlowInstanceStore
from claimflow.application.services.flow_json_validator import FlowJsonValidator
from claimflow.application.services.flow_selector import FlowSelector
from claimflow.application.services.gate_evaluator import (
    AIGateStrategy,
    GateEvaluator,
    RuleGateStrategy,
)

__all__ = [
    "AIGateStrategy",
    "EvidenceAggregator",
    "EvidenceValidator",
    "FlowInstanceStore",
    "FlowJsonValidator",
    "FlowSelector",
    "GateEvaluator",
    "RuleGateStrategy",
]
