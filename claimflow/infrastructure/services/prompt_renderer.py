"""Flow engine prompts: prompt key → system/user templates (Jinja) and temperature."""

from __future__ import annotations

from typing import Any

from jinja2 import Environment, Template

# In-repo prompt definitions: key → (system_template, user_template, temperature)
_DEFAULT_PROMPTS: dict[str, tuple[str, str, float]] = {
    "flow.gate_evaluation": (
        "You evaluate whether a property inspection phase gate should be passed "
        "based on the completed movements and evidence. Consider quality, "
        "completeness, and any blockers. Respond with JSON only.",
        "Gate: {{ gate.name }} ({{ gate.id }})\n"
        "{% if gate.description %}Description: {{ gate.description }}\n{% endif %}"
        "Flow: {{ flow.name }}, phase {{ flow.phase_id }}\n"
        "Evaluation criteria: {{ gate.criteria | tojson }}\n\n"
        "Claim context: {{ claim | tojson }}\n"
        "Completed movements: {{ completed_movements | tojson }}\n"
        "Evidence types captured: {{ evidence_types | join(', ') or 'none' }}\n\n"
        "Should this gate pass? Return JSON:\n"
        '{"passed": boolean, "reason": "explanation", '
        '"blockers": ["blocking issues"], "warnings": ["non-blocking concerns"]}',
        0.3,
    ),
    "flow.evidence_validation": (
        "You review evidence captured during a property insurance inspection and "
        "judge whether it satisfies the movement's requirements. Respond with JSON only.",
        "Movement: {{ movement.name }}\n"
        "{% if movement.description %}Description: {{ movement.description }}\n{% endif %}"
        "Requirements: {{ requirements | tojson }}\n"
        "Evidence: {{ evidence | tojson }}\n"
        "Claim context: {{ claim | tojson }}\n\n"
        "Return JSON:\n"
        '{"is_valid": boolean, "missing_items": ["..."], '
        '"quality_issues": ["..."], "confidence": number between 0 and 1}',
        0.2,
    ),
    "flow.room_expansion": (
        "You generate room-specific inspection movements based on the room type and "
        "claim context. Each room may need different documentation based on its "
        "characteristics. Respond with JSON only.",
        "Room name: {{ room_name }}\n"
        "Room type: {{ room_type }}\n"
        "Peril type: {{ claim.get('peril_type') or 'unknown' }}\n"
        "Current phase: {{ phase.name }} ({{ phase.id }})\n"
        "Flow: {{ flow | tojson }}\n\n"
        "Generate inspection movements for this room. Return JSON:\n"
        '{"movements": [{"name": "Movement name", "description": "What to document", '
        '"criticality": "high|medium|low", "is_required": true, '
        '"evidence_requirements": [{"type": "photo|audio|measurement|sketch|note", '
        '"description": "what to capture", "is_required": true, "quantity_min": 1}]}]}',
        0.4,
    ),
    "flow.dynamic_movement_injection": (
        "You suggest additional inspection movements when observed damage is not "
        "covered by the current flow. Suggest only what is missing. Respond with JSON only.",
        "Flow: {{ flow | tojson }}\n"
        "Completed movements: {{ completed_movements | tojson }}\n"
        "Observed damage: {{ observed_damage | join('; ') or 'none reported' }}\n"
        "Additional context: {{ context | tojson }}\n"
        "Claim context: {{ claim | tojson }}\n\n"
        "Return JSON:\n"
        '{"suggestions": [{"name": "Movement name", "description": "What to document", '
        '"criticality": "high|medium|low", "is_required": false, '
        '"rationale": "why it is needed", "evidence_requirements": []}]}',
        0.4,
    ),
}


class FlowPromptRenderer:
    """Renders the system and user prompt for a flow engine prompt key. Implements IPromptRenderer."""

    def __init__(
        self,
        prompts: dict[str, tuple[str, str, float]] | None = None,
    ) -> None:
        """Initialize with optional prompt dict; falls back to _DEFAULT_PROMPTS."""
        self._prompts = prompts or _DEFAULT_PROMPTS
        self._env = Environment(autoescape=False)
        self._compiled: dict[str, tuple[Template, Template, float]] = {}
        for key, (system_str, user_str, temperature) in self._prompts.items():
            self._compiled[key] = (
                self._env.from_string(system_str),
                self._env.from_string(user_str),
                temperature,
            )

    def has_prompt(self, prompt_key: str) -> bool:
        return prompt_key in self._compiled

    def render(self, prompt_key: str, context: dict[str, Any]) -> tuple[str, str, float]:
        """Render (system, user, temperature) for the key. Raises KeyError if key unknown."""
        if prompt_key not in self._compiled:
            raise KeyError(f"Unknown prompt: {prompt_key}")
        system_tpl, user_tpl, temperature = self._compiled[prompt_key]
        return system_tpl.render(**context), user_tpl.render(**context), temperature
