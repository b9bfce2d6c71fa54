"""Dynamic movement expansion: templated, custom, AI room expansion and suggestions."""

from __future__ import annotations

import copy
from typing import Any

from pydantic import ValidationError

from claimflow.application.dtos.dynamic_movement import (
    DynamicMovementPayload,
    MovementSuggestionPayload,
    MovementSuggestionsPayload,
)
from claimflow.application.interfaces.repositories import IMovementCompletionRepository
from claimflow.application.interfaces.services import ILanguageModel, IPromptRenderer
from claimflow.application.services.flow_instance_store import FlowInstanceStore
from claimflow.domain.entities.flow_definition import FlowDefinitionEntity
from claimflow.domain.entities.flow_instance import FlowInstanceEntity
from claimflow.domain.exceptions import (
    AIResponseException,
    FlowStateException,
    ResourceNotFoundException,
    ValidationException,
)
from claimflow.domain.value_objects.flow import MovementDefinition, PhaseDefinition
from claimflow.shared.logging import get_logger
from claimflow.shared.utils.generators import generate_dynamic_movement_id

logger = get_logger(__name__)

ROOM_EXPANSION_PROMPT_KEY = "flow.room_expansion"
SUGGESTION_PROMPT_KEY = "flow.dynamic_movement_injection"
ROOM_PLACEHOLDER = "{room}"
MAX_GENERATED = 20


def _substitute_room(value: Any, room_name: str) -> Any:
    if isinstance(value, str):
        return value.replace(ROOM_PLACEHOLDER, room_name)
    if isinstance(value, list):
        return [_substitute_room(v, room_name) for v in value]
    if isinstance(value, dict):
        return {k: _substitute_room(v, room_name) for k, v in value.items()}
    return value


def _payload_errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def build_templated_payload(template: MovementDefinition, room_name: str | None) -> dict[str, Any]:
    """Clone a movement definition, substituting the room name.

    ``{room}`` placeholders in text are replaced; without placeholders the
    room is appended to the name (``"Inspect walls - Kitchen"``).
    """
    data = {
        "name": template.name,
        "description": template.description,
        "is_required": template.is_required,
        "criticality": template.criticality.value,
        "guidance": copy.deepcopy(template.guidance),
        "evidence_requirements": [r.to_dict() for r in template.evidence_requirements],
        "estimated_minutes": template.estimated_minutes,
    }
    if room_name:
        data = _substitute_room(data, room_name)
        if ROOM_PLACEHOLDER not in template.name:
            data["name"] = f"{template.name} - {room_name}"
    return data


class DynamicMovementService:
    """Inserts instance-scoped movements that share the completion-key namespace."""

    def __init__(
        self,
        store: FlowInstanceStore,
        completion_repo: IMovementCompletionRepository,
        language_model: ILanguageModel | None,
        prompt_renderer: IPromptRenderer,
        *,
        model: str | None = None,
    ) -> None:
        self.store = store
        self.completion_repo = completion_repo
        self.language_model = language_model
        self.prompt_renderer = prompt_renderer
        self.model = model

    async def add_dynamic_movement(
        self,
        tenant_id: str,
        instance_id: str,
        *,
        payload: DynamicMovementPayload | dict[str, Any] | None = None,
        template_movement_id: str | None = None,
        room_name: str | None = None,
        phase_id: str | None = None,
        added_by: str | None = None,
    ) -> MovementDefinition:
        """Add a templated (clone of ``template_movement_id``) or custom movement.

        The movement joins the current phase unless ``phase_id`` names the
        current or a later one; the template may come from any phase.

        Raises:
            ValidationException: Neither template nor payload, or payload invalid.
            ResourceNotFoundException: Template movement or phase not found.
            FlowStateException: Instance not active, or target phase already passed.
        """
        entity, definition = await self.store.load(tenant_id, instance_id)
        if template_movement_id:
            template = entity.find_movement(definition, template_movement_id)
            if template is None:
                raise ResourceNotFoundException("movement", template_movement_id)
            raw: dict[str, Any] | DynamicMovementPayload = build_templated_payload(template, room_name)
        elif payload is not None:
            raw = payload
        else:
            raise ValidationException(
                "Provide template_movement_id or a custom movement", field="template_movement_id"
            )
        validated = self._validate(raw)
        added = await self._insert(
            tenant_id,
            instance_id,
            [validated],
            phase_id=phase_id,
            room_name=room_name,
            source="template" if template_movement_id else "custom",
            added_by=added_by,
        )
        return added[0]

    async def add_room(
        self,
        tenant_id: str,
        instance_id: str,
        room_name: str,
        room_type: str | None = None,
        *,
        added_by: str | None = None,
    ) -> list[MovementDefinition]:
        """Ask the model for room-specific movements and append the valid ones to the current phase.

        Raises:
            AIResponseException: Model not configured or call failed.
            ValidationException: Response contained no valid movement.
        """
        if not room_name or not room_name.strip():
            raise ValidationException("room_name is required", field="room_name")
        if self.language_model is None:
            raise AIResponseException("AI is not configured", ROOM_EXPANSION_PROMPT_KEY)
        entity, definition = await self.store.load(tenant_id, instance_id)
        entity.ensure_active()
        phase = entity.current_phase(definition)
        if phase is None:
            raise FlowStateException("Flow has no current phase", flow_instance_id=instance_id)

        system_prompt, user_prompt, temperature = self.prompt_renderer.render(
            ROOM_EXPANSION_PROMPT_KEY,
            {
                "room_name": room_name,
                "room_type": room_type or "room",
                "flow": self._flow_summary(entity, definition),
                "phase": {"id": phase.id, "name": phase.name, "description": phase.description},
                "claim": entity.context,
            },
        )
        response = await self.language_model.complete_json(
            system_prompt, user_prompt, temperature=temperature, model=self.model
        )
        raw_movements = response.get("movements")
        if not isinstance(raw_movements, list):
            raise ValidationException("Room expansion response has no 'movements' list", field="movements")
        accepted = self._validate_each(raw_movements[:MAX_GENERATED], DynamicMovementPayload)
        if not accepted:
            raise ValidationException(
                "Room expansion produced no valid movements", field="movements"
            )
        added = await self._insert(
            tenant_id,
            instance_id,
            accepted,
            phase_id=phase.id,
            room_name=room_name,
            source="ai_room_expansion",
            added_by=added_by,
        )
        logger.info(
            "Added %d movements for room %s to flow %s", len(added), room_name, instance_id
        )
        return added

    async def suggest_additional_movements(
        self,
        tenant_id: str,
        instance_id: str,
        observed_damage: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Return validated AI suggestions without inserting them; [] when the model fails."""
        if self.language_model is None:
            return []
        entity, definition = await self.store.load(tenant_id, instance_id)
        completions = await self.completion_repo.list_for_instance(tenant_id, instance_id)
        names = {m.key: m.name for m in entity.all_movements(definition)}
        system_prompt, user_prompt, temperature = self.prompt_renderer.render(
            SUGGESTION_PROMPT_KEY,
            {
                "flow": self._flow_summary(entity, definition),
                "completed_movements": [
                    {"movement_key": c.movement_key, "name": names.get(c.movement_key), "status": c.status, "notes": c.notes}
                    for c in completions
                ],
                "observed_damage": observed_damage or [],
                "context": context or {},
                "claim": entity.context,
            },
        )
        try:
            response = await self.language_model.complete_json(
                system_prompt, user_prompt, temperature=temperature, model=self.model
            )
            parsed = MovementSuggestionsPayload.model_validate(response)
        except AIResponseException as exc:
            logger.warning("Movement suggestions unavailable for flow %s: %s", instance_id, exc.message)
            return []
        except ValidationError as exc:
            logger.warning("Discarding malformed suggestions for flow %s: %s", instance_id, _payload_errors(exc))
            return []
        suggestions = self._validate_each(parsed.suggestions, MovementSuggestionPayload)
        return [s.model_dump(mode="json") for s in suggestions]

    async def _insert(
        self,
        tenant_id: str,
        instance_id: str,
        payloads: list[DynamicMovementPayload],
        *,
        phase_id: str | None,
        room_name: str | None,
        source: str,
        added_by: str | None,
    ) -> list[MovementDefinition]:
        async def insert(e: FlowInstanceEntity, d: FlowDefinitionEntity) -> list[MovementDefinition]:
            e.ensure_active()
            phase = self._target_phase(e, d, phase_id)
            existing = e.phase_movements(d, phase)
            next_order = max((m.sequence_order for m in existing), default=0) + 1
            added: list[MovementDefinition] = []
            for offset, payload in enumerate(payloads):
                data = payload.model_dump(mode="json")
                data.update(
                    id=generate_dynamic_movement_id(payload.name),
                    sequence_order=next_order + offset,
                    room_name=room_name,
                    is_dynamic=True,
                )
                movement = MovementDefinition.from_dict(phase.id, data, is_dynamic=True)
                e.add_dynamic_movement(d, movement)
                added.append(movement)
            # Record provenance on the stored dicts.
            for stored in e.dynamic_movements[-len(added):]:
                stored["source"] = source
                stored["added_by"] = added_by
            return added

        added, _, _ = await self.store.mutate(tenant_id, instance_id, insert)
        return added

    @staticmethod
    def _target_phase(
        entity: FlowInstanceEntity, definition: FlowDefinitionEntity, phase_id: str | None
    ) -> PhaseDefinition:
        if phase_id is None:
            phase = entity.current_phase(definition)
            if phase is None:
                raise FlowStateException("Flow has no current phase", flow_instance_id=entity.id)
            return phase
        phase = definition.get_phase(phase_id)
        index = definition.phase_index(phase_id)
        if phase is None or index is None:
            raise ResourceNotFoundException("phase", phase_id)
        if index < entity.current_phase_index:
            raise FlowStateException(
                f"Phase {phase_id} has already been passed",
                flow_instance_id=entity.id,
                phase_id=phase_id,
            )
        return phase

    @staticmethod
    def _validate(raw: DynamicMovementPayload | dict[str, Any]) -> DynamicMovementPayload:
        if isinstance(raw, DynamicMovementPayload):
            return raw
        try:
            return DynamicMovementPayload.model_validate(raw)
        except ValidationError as exc:
            raise ValidationException(f"Invalid dynamic movement: {_payload_errors(exc)}", field="movement") from exc

    @staticmethod
    def _validate_each(items: list[Any], model: type[DynamicMovementPayload]) -> list[Any]:
        accepted = []
        for item in items:
            try:
                accepted.append(model.model_validate(item))
            except ValidationError as exc:
                logger.warning("Rejected generated movement: %s", _payload_errors(exc))
        return accepted

    @staticmethod
    def _flow_summary(entity: FlowInstanceEntity, definition: FlowDefinitionEntity) -> dict[str, Any]:
        return {
            "name": definition.name,
            "flow_key": definition.flow_key,
            "current_phase_id": entity.current_phase_id,
            "phases": [
                {
                    "id": phase.id,
                    "name": phase.name,
                    "movements": [m.name for m in entity.phase_movements(definition, phase)],
                }
                for phase in definition.phases
            ],
        }
