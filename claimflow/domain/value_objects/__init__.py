"""Domain value objects for flow templates."""

from claimflow.domain.value_objects.flow import (
    EvidenceRequirement,
    GateDefinition,
    MovementDefinition,
    PhaseDefinition,
    movement_key,
    normalize_evidence_type,
    normalize_peril,
    split_movement_key,
)

__all__ = [
    "EvidenceRequirement",
    "GateDefinition",
    "MovementDefinition",
    "PhaseDefinition",
    "movement_key",
    "normalize_evidence_type",
    "normalize_peril",
    "split_movement_key",
]
