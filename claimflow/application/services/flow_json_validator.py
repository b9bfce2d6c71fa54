"""Validates flow_json documents (structure via JSON Schema, then semantic rules).

Errors make a document unusable by the engine; warnings flag authoring
gaps (missing guidance, odd ordering) that do not break execution.
"""

from __future__ import annotations

from typing import Any

import jsonschema

from claimflow.application.dtos.flow_definition import FlowValidationResult, ValidationIssue
from claimflow.domain.enums import Criticality, GateEvaluationType, GateType
from claimflow.domain.value_objects.flow import normalize_evidence_type

FLOW_SCHEMA_VERSION = "1.0"

ERROR = "error"
WARNING = "warning"


def get_flow_json_schema() -> dict[str, Any]:
    """Return the JSON Schema for the structural shape of flow_json."""
    movement = {
        "type": "object",
        "required": ["id", "name"],
        "properties": {
            "id": {"type": "string", "minLength": 1},
            "name": {"type": "string", "minLength": 1},
            "description": {"type": ["string", "null"]},
            "sequence_order": {"type": "number"},
            "is_required": {"type": "boolean"},
            "criticality": {"type": "string"},
            "guidance": {"type": ["object", "null"]},
            "evidence_requirements": {"type": "array", "items": {"type": "object"}},
            "estimated_minutes": {"type": ["number", "null"]},
        },
    }
    phase = {
        "type": "object",
        "required": ["id", "name"],
        "properties": {
            "id": {"type": "string", "minLength": 1},
            "name": {"type": "string", "minLength": 1},
            "description": {"type": ["string", "null"]},
            "sequence_order": {"type": "number"},
            "movements": {"type": "array", "items": movement},
        },
    }
    gate = {
        "type": "object",
        "required": ["id", "from_phase"],
        "properties": {
            "id": {"type": "string", "minLength": 1},
            "name": {"type": "string"},
            "from_phase": {"type": "string", "minLength": 1},
            "to_phase": {"type": ["string", "null"]},
            "gate_type": {"type": "string"},
            "evaluation_criteria": {"type": "object"},
        },
    }
    return {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "title": "Flow Definition",
        "type": "object",
        "required": ["schema_version", "metadata", "phases"],
        "properties": {
            "schema_version": {"type": "string", "minLength": 1},
            "metadata": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "description": {"type": ["string", "null"]},
                    "estimated_duration_minutes": {"type": ["number", "null"]},
                    "primary_peril": {"type": ["string", "null"]},
                    "secondary_perils": {"type": "array", "items": {"type": "string"}},
                },
            },
            "phases": {"type": "array", "items": phase},
            "gates": {"type": "array", "items": gate},
        },
    }


def get_empty_template(name: str = "New Inspection Flow") -> dict[str, Any]:
    """Return a minimal valid flow_json to start authoring from."""
    return {
        "schema_version": FLOW_SCHEMA_VERSION,
        "metadata": {
            "name": name,
            "description": "",
            "estimated_duration_minutes": 60,
            "primary_peril": None,
            "secondary_perils": [],
        },
        "phases": [
            {
                "id": "arrival",
                "name": "Arrival",
                "description": "Arrive on site and document the property",
                "sequence_order": 1,
                "movements": [
                    {
                        "id": "arrival_exterior_overview",
                        "name": "Exterior overview",
                        "description": "Capture the front of the property and address",
                        "sequence_order": 1,
                        "is_required": True,
                        "criticality": Criticality.HIGH.value,
                        "guidance": {
                            "instruction": "Photograph the front elevation with the address visible.",
                            "tts_text": "Start by photographing the front of the property.",
                            "tips": [],
                        },
                        "evidence_requirements": [
                            {
                                "type": "photo",
                                "description": "Front elevation",
                                "is_required": True,
                                "quantity_min": 1,
                                "quantity_max": 5,
                            }
                        ],
                        "estimated_minutes": 5,
                    }
                ],
            }
        ],
        "gates": [],
    }


def _path(parts: Any) -> str:
    out = ""
    for part in parts:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out


class FlowJsonValidator:
    """Structural and semantic validation of flow_json (single responsibility)."""

    def __init__(self) -> None:
        self._validator = jsonschema.Draft7Validator(get_flow_json_schema())

    def validate(self, flow_json: Any) -> FlowValidationResult:
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        if not isinstance(flow_json, dict):
            errors.append(ValidationIssue("", "Flow JSON must be an object", ERROR))
            return FlowValidationResult(False, errors, warnings)

        for err in sorted(self._validator.iter_errors(flow_json), key=lambda e: list(e.path)):
            errors.append(ValidationIssue(_path(err.absolute_path), err.message, ERROR))
        if errors:
            # Semantic checks assume the structural shape holds.
            return FlowValidationResult(False, errors, warnings)

        self._check_metadata(flow_json["metadata"], warnings)
        phase_ids = self._check_phases(flow_json["phases"], errors, warnings)
        self._check_gates(flow_json.get("gates") or [], phase_ids, errors, warnings)
        return FlowValidationResult(not errors, errors, warnings)

    def _check_metadata(self, metadata: dict[str, Any], warnings: list[ValidationIssue]) -> None:
        if not metadata.get("primary_peril"):
            warnings.append(
                ValidationIssue("metadata.primary_peril", "Primary peril should be specified", WARNING)
            )
        if not isinstance(metadata.get("estimated_duration_minutes"), (int, float)):
            warnings.append(
                ValidationIssue(
                    "metadata.estimated_duration_minutes",
                    "Estimated duration should be a number",
                    WARNING,
                )
            )

    def _check_phases(
        self,
        phases: list[dict[str, Any]],
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> set[str]:
        phase_ids: set[str] = set()
        movement_owner: dict[str, str] = {}
        if not phases:
            warnings.append(ValidationIssue("phases", "Flow has no phases defined", WARNING))
        for p_index, phase in enumerate(phases):
            phase_path = f"phases[{p_index}]"
            phase_id = phase["id"]
            if phase_id in phase_ids:
                errors.append(
                    ValidationIssue(f"{phase_path}.id", f"Duplicate phase ID: {phase_id}", ERROR)
                )
            phase_ids.add(phase_id)
            if "sequence_order" not in phase:
                warnings.append(
                    ValidationIssue(
                        f"{phase_path}.sequence_order",
                        f"Phase {phase_id} is missing sequence_order; declared order is used",
                        WARNING,
                    )
                )
            movements = phase.get("movements")
            if not movements:
                warnings.append(
                    ValidationIssue(f"{phase_path}.movements", f"Phase {phase_id} has no movements", WARNING)
                )
                continue
            seen_in_phase: set[str] = set()
            for m_index, movement in enumerate(movements):
                self._check_movement(
                    movement,
                    f"{phase_path}.movements[{m_index}]",
                    phase_id,
                    seen_in_phase,
                    movement_owner,
                    errors,
                    warnings,
                )
        return phase_ids

    def _check_movement(
        self,
        movement: dict[str, Any],
        path: str,
        phase_id: str,
        seen_in_phase: set[str],
        movement_owner: dict[str, str],
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> None:
        movement_id = movement["id"]
        if movement_id in seen_in_phase:
            errors.append(
                ValidationIssue(f"{path}.id", f"Duplicate movement ID in phase {phase_id}: {movement_id}", ERROR)
            )
        elif movement_id in movement_owner:
            warnings.append(
                ValidationIssue(
                    f"{path}.id",
                    f"Movement ID {movement_id} is also used in phase {movement_owner[movement_id]}",
                    WARNING,
                )
            )
        seen_in_phase.add(movement_id)
        movement_owner.setdefault(movement_id, phase_id)

        if "sequence_order" not in movement:
            warnings.append(
                ValidationIssue(f"{path}.sequence_order", f"Movement {movement_id} is missing sequence_order", WARNING)
            )
        criticality = movement.get("criticality")
        if criticality is not None and criticality not in Criticality.values():
            errors.append(
                ValidationIssue(
                    f"{path}.criticality",
                    f"Movement {movement_id} has invalid criticality: {criticality}",
                    ERROR,
                )
            )
        guidance = movement.get("guidance")
        if not guidance:
            warnings.append(ValidationIssue(f"{path}.guidance", f"Movement {movement_id} is missing guidance", WARNING))
        else:
            if not guidance.get("instruction"):
                warnings.append(
                    ValidationIssue(
                        f"{path}.guidance.instruction",
                        f"Movement {movement_id} is missing instruction text",
                        WARNING,
                    )
                )
            if not guidance.get("tts_text"):
                warnings.append(
                    ValidationIssue(
                        f"{path}.guidance.tts_text", f"Movement {movement_id} is missing TTS text", WARNING
                    )
                )

        for r_index, req in enumerate(movement.get("evidence_requirements") or []):
            req_path = f"{path}.evidence_requirements[{r_index}]"
            req_type = req.get("type")
            if not req_type:
                errors.append(ValidationIssue(f"{req_path}.type", "Evidence requirement is missing type", ERROR))
            elif normalize_evidence_type(str(req_type)) is None:
                errors.append(ValidationIssue(f"{req_path}.type", f"Invalid evidence type: {req_type}", ERROR))
            q_min = req.get("quantity_min")
            q_max = req.get("quantity_max")
            if not isinstance(q_min, int) or isinstance(q_min, bool) or q_min < 0:
                warnings.append(
                    ValidationIssue(
                        f"{req_path}.quantity_min", "Evidence requirement should have valid quantity_min", WARNING
                    )
                )
            if q_max is not None and (not isinstance(q_max, int) or isinstance(q_max, bool) or q_max < 0):
                warnings.append(
                    ValidationIssue(
                        f"{req_path}.quantity_max", "Evidence requirement should have valid quantity_max", WARNING
                    )
                )
            if isinstance(q_min, int) and isinstance(q_max, int) and q_min > q_max:
                errors.append(
                    ValidationIssue(req_path, "quantity_min cannot be greater than quantity_max", ERROR)
                )

    def _check_gates(
        self,
        gates: list[dict[str, Any]],
        phase_ids: set[str],
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> None:
        gate_ids: set[str] = set()
        edges: dict[str, list[str]] = {}
        for g_index, gate in enumerate(gates):
            gate_path = f"gates[{g_index}]"
            gate_id = gate["id"]
            if gate_id in gate_ids:
                errors.append(ValidationIssue(f"{gate_path}.id", f"Duplicate gate ID: {gate_id}", ERROR))
            gate_ids.add(gate_id)

            from_phase = gate["from_phase"]
            to_phase = gate.get("to_phase")
            if from_phase not in phase_ids:
                errors.append(
                    ValidationIssue(
                        f"{gate_path}.from_phase",
                        f"Gate {gate_id} references non-existent phase: {from_phase}",
                        ERROR,
                    )
                )
            if to_phase and to_phase not in phase_ids:
                errors.append(
                    ValidationIssue(
                        f"{gate_path}.to_phase",
                        f"Gate {gate_id} references non-existent phase: {to_phase}",
                        ERROR,
                    )
                )
            if to_phase:
                edges.setdefault(from_phase, []).append(to_phase)

            gate_type = gate.get("gate_type")
            if gate_type is not None and gate_type not in GateType.values():
                errors.append(
                    ValidationIssue(f"{gate_path}.gate_type", f"Invalid gate type: {gate_type}", ERROR)
                )

            criteria = gate.get("evaluation_criteria")
            if not criteria:
                warnings.append(
                    ValidationIssue(
                        f"{gate_path}.evaluation_criteria",
                        f"Gate {gate_id} is missing evaluation criteria",
                        WARNING,
                    )
                )
                continue
            eval_type = criteria.get("type")
            if eval_type not in (*GateEvaluationType.values(), "rule"):
                errors.append(
                    ValidationIssue(
                        f"{gate_path}.evaluation_criteria.type",
                        f"Invalid evaluation type: {eval_type}",
                        ERROR,
                    )
                )
            elif eval_type == GateEvaluationType.AI.value and not criteria.get("ai_prompt_key"):
                warnings.append(
                    ValidationIssue(
                        f"{gate_path}.evaluation_criteria.ai_prompt_key",
                        f"AI gate {gate_id} should have ai_prompt_key",
                        WARNING,
                    )
                )
            elif eval_type != GateEvaluationType.AI.value and not criteria.get("simple_rules"):
                warnings.append(
                    ValidationIssue(
                        f"{gate_path}.evaluation_criteria.simple_rules",
                        f"Simple gate {gate_id} should have simple_rules",
                        WARNING,
                    )
                )

        if _has_cycle(edges):
            errors.append(ValidationIssue("gates", "Circular dependency detected in gates", ERROR))


def _has_cycle(edges: dict[str, list[str]]) -> bool:
    """Depth-first search for a cycle in the from_phase -> to_phase graph."""
    visited: set[str] = set()
    on_stack: set[str] = set()

    def visit(node: str) -> bool:
        if node in on_stack:
            return True
        if node in visited:
            return False
        visited.add(node)
        on_stack.add(node)
        for neighbor in edges.get(node, []):
            if visit(neighbor):
                return True
        on_stack.discard(node)
        return False

    return any(visit(node) for node in list(edges))
