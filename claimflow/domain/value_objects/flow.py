"""Value objects for flow templates.

Phases, movements, evidence requirements and gates are parsed from a
flow definition's ``flow_json`` document into immutable objects. Dynamic
movements injected at runtime are plain ``MovementDefinition`` values with
``is_dynamic=True`` so the executor treats both kinds uniformly.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from claimflow.domain.enums import Criticality, EvidenceType, GateEvaluationType, GateType

MOVEMENT_KEY_SEPARATOR = ":"

# Peril spellings seen on claims, mapped to the canonical peril codes used by flow definitions.
PERIL_ALIASES: dict[str, str] = {
    "wind": "wind_hail",
    "hail": "wind_hail",
    "windhail": "wind_hail",
    "wind_and_hail": "wind_hail",
    "hail_wind": "wind_hail",
    "storm": "wind_hail",
    "hurricane": "wind_hail",
    "tornado": "wind_hail",
    "water_damage": "water",
    "pipe_burst": "water",
    "plumbing": "water",
    "flooding": "flood",
    "fire_damage": "fire",
    "lightning": "fire",
    "smoke_damage": "smoke",
    "mold_damage": "mold",
    "mildew": "mold",
    "vehicle": "impact",
    "tree": "impact",
    "falling_object": "impact",
}

# Evidence spellings accepted in templates and inline evidence blobs.
EVIDENCE_TYPE_ALIASES: dict[str, EvidenceType] = {
    "photo": EvidenceType.PHOTO,
    "photos": EvidenceType.PHOTO,
    "image": EvidenceType.PHOTO,
    "photo_id": EvidenceType.PHOTO,
    "photo_ids": EvidenceType.PHOTO,
    "photoid": EvidenceType.PHOTO,
    "photoids": EvidenceType.PHOTO,
    "audio": EvidenceType.AUDIO,
    "audio_id": EvidenceType.AUDIO,
    "audio_ids": EvidenceType.AUDIO,
    "audioid": EvidenceType.AUDIO,
    "audioids": EvidenceType.AUDIO,
    "voice_note": EvidenceType.AUDIO,
    "voice_notes": EvidenceType.AUDIO,
    "measurement": EvidenceType.MEASUREMENT,
    "measurements": EvidenceType.MEASUREMENT,
    "sketch": EvidenceType.SKETCH,
    "sketches": EvidenceType.SKETCH,
    "note": EvidenceType.NOTE,
    "notes": EvidenceType.NOTE,
}

_NON_WORD_RE = re.compile(r"[\s/\-]+")


def movement_key(phase_id: str, movement_id: str) -> str:
    """Return the completed-movement key ``"<phase_id>:<movement_id>"``."""
    return f"{phase_id}{MOVEMENT_KEY_SEPARATOR}{movement_id}"


def split_movement_key(key: str) -> tuple[str, str]:
    """Split a movement key into ``(phase_id, movement_id)``.

    Raises:
        ValueError: If the key has no separator.
    """
    phase_id, sep, movement_id = key.partition(MOVEMENT_KEY_SEPARATOR)
    if not sep or not phase_id or not movement_id:
        raise ValueError(f"Invalid movement key: {key!r}")
    return phase_id, movement_id


def normalize_peril(peril_type: str) -> str:
    """Lower-case a peril and map separators and known aliases to the canonical code.

    ``"Wind/Hail"``, ``"wind-hail"`` and ``"hail"`` all become ``"wind_hail"``.
    """
    value = _NON_WORD_RE.sub("_", (peril_type or "").strip().lower()).strip("_")
    return PERIL_ALIASES.get(value, value)


def normalize_evidence_type(value: str) -> EvidenceType | None:
    """Map an evidence type or inline evidence key to ``EvidenceType``; None when unknown."""
    if not value:
        return None
    key = re.sub(r"(?<!^)(?=[A-Z])", "_", value).lower()
    return EVIDENCE_TYPE_ALIASES.get(key) or EVIDENCE_TYPE_ALIASES.get(key.replace("_", ""))


def _int_or_none(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class EvidenceRequirement:
    """Evidence a movement asks for (e.g. at least 2 photos)."""

    type: EvidenceType
    description: str | None = None
    is_required: bool = True
    quantity_min: int = 1
    quantity_max: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EvidenceRequirement":
        evidence_type = normalize_evidence_type(str(data.get("type") or ""))
        if evidence_type is None:
            raise ValueError(f"Unknown evidence type: {data.get('type')!r}")
        quantity_min = _int_or_none(data.get("quantity_min"))
        return cls(
            type=evidence_type,
            description=data.get("description"),
            is_required=bool(data.get("is_required", True)),
            quantity_min=1 if quantity_min is None else max(quantity_min, 0),
            quantity_max=_int_or_none(data.get("quantity_max")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "is_required": self.is_required,
            "quantity_min": self.quantity_min,
            "quantity_max": self.quantity_max,
        }


@dataclass(frozen=True)
class MovementDefinition:
    """One inspection step of a phase (template-declared or dynamic)."""

    id: str
    phase_id: str
    name: str
    description: str | None = None
    sequence_order: int = 0
    is_required: bool = True
    criticality: Criticality = Criticality.MEDIUM
    guidance: dict[str, Any] = field(default_factory=dict)
    evidence_requirements: tuple[EvidenceRequirement, ...] = ()
    estimated_minutes: int | None = None
    is_dynamic: bool = False
    room_name: str | None = None

    @property
    def key(self) -> str:
        return movement_key(self.phase_id, self.id)

    @classmethod
    def from_dict(
        cls,
        phase_id: str,
        data: dict[str, Any],
        *,
        position: int = 0,
        is_dynamic: bool = False,
    ) -> "MovementDefinition":
        """Build from a flow_json movement object; ``position`` is the fallback sequence order."""
        sequence_order = _int_or_none(data.get("sequence_order"))
        criticality = data.get("criticality") or Criticality.MEDIUM.value
        return cls(
            id=str(data["id"]),
            phase_id=phase_id,
            name=str(data.get("name") or data["id"]),
            description=data.get("description"),
            sequence_order=position if sequence_order is None else sequence_order,
            is_required=bool(data.get("is_required", True)),
            criticality=Criticality(criticality),
            guidance=dict(data.get("guidance") or {}),
            evidence_requirements=tuple(
                EvidenceRequirement.from_dict(r) for r in data.get("evidence_requirements") or []
            ),
            estimated_minutes=_int_or_none(data.get("estimated_minutes")),
            is_dynamic=bool(data.get("is_dynamic", is_dynamic)),
            room_name=data.get("room_name"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "phase_id": self.phase_id,
            "name": self.name,
            "description": self.description,
            "sequence_order": self.sequence_order,
            "is_required": self.is_required,
            "criticality": self.criticality.value,
            "guidance": dict(self.guidance),
            "evidence_requirements": [r.to_dict() for r in self.evidence_requirements],
            "estimated_minutes": self.estimated_minutes,
            "is_dynamic": self.is_dynamic,
            "room_name": self.room_name,
        }


@dataclass(frozen=True)
class PhaseDefinition:
    """Ordered stage of a flow; ``movements`` are already sorted by sequence order."""

    id: str
    name: str
    description: str | None
    sequence_order: int
    movements: tuple[MovementDefinition, ...]

    def get_movement(self, movement_id: str) -> MovementDefinition | None:
        for movement in self.movements:
            if movement.id == movement_id:
                return movement
        return None


@dataclass(frozen=True)
class GateDefinition:
    """Checkpoint between two phases.

    ``rules`` holds the simple-criteria keys merged from the top level of
    ``evaluation_criteria`` and its ``simple_rules`` object.
    """

    id: str
    name: str
    from_phase: str
    to_phase: str | None
    gate_type: GateType = GateType.BLOCKING
    evaluation_type: GateEvaluationType = GateEvaluationType.SIMPLE
    rules: dict[str, Any] = field(default_factory=dict)
    ai_prompt_key: str | None = None
    description: str | None = None

    @property
    def is_blocking(self) -> bool:
        return self.gate_type == GateType.BLOCKING

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GateDefinition":
        criteria = dict(data.get("evaluation_criteria") or {})
        raw_type = str(criteria.pop("type", None) or GateEvaluationType.SIMPLE.value).lower()
        if raw_type == "rule":
            raw_type = GateEvaluationType.SIMPLE.value
        ai_prompt_key = criteria.pop("ai_prompt_key", None) or data.get("ai_prompt_key")
        simple_rules = criteria.pop("simple_rules", None) or {}
        rules = {**criteria, **simple_rules}
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            from_phase=str(data["from_phase"]),
            to_phase=data.get("to_phase"),
            gate_type=GateType(data.get("gate_type") or GateType.BLOCKING.value),
            evaluation_type=GateEvaluationType(raw_type),
            rules=rules,
            ai_prompt_key=ai_prompt_key,
            description=data.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "from_phase": self.from_phase,
            "to_phase": self.to_phase,
            "gate_type": self.gate_type.value,
            "evaluation_type": self.evaluation_type.value,
            "rules": dict(self.rules),
            "ai_prompt_key": self.ai_prompt_key,
        }
