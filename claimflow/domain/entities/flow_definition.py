"""Flow definition domain entity.

A flow definition is a versioned inspection template matched to claims by
peril. Each version is immutable; the parsed phases and gates are derived
from ``flow_json`` once on construction.
"""

from dataclasses import dataclass, field
from typing import Any

from claimflow.domain.exceptions import ValidationException
from claimflow.domain.value_objects.flow import (
    GateDefinition,
    MovementDefinition,
    PhaseDefinition,
    normalize_peril,
)


def parse_phases(flow_json: dict[str, Any]) -> tuple[PhaseDefinition, ...]:
    """Parse and order phases (and their movements) by sequence_order; ties keep declared order."""
    parsed: list[tuple[int, int, PhaseDefinition]] = []
    for position, phase in enumerate(flow_json.get("phases") or []):
        phase_id = str(phase["id"])
        movements = [
            MovementDefinition.from_dict(phase_id, m, position=i)
            for i, m in enumerate(phase.get("movements") or [])
        ]
        movements.sort(key=lambda m: m.sequence_order)
        order = phase.get("sequence_order")
        sequence_order = position if order is None else int(order)
        parsed.append(
            (
                sequence_order,
                position,
                PhaseDefinition(
                    id=phase_id,
                    name=str(phase.get("name") or phase_id),
                    description=phase.get("description"),
                    sequence_order=sequence_order,
                    movements=tuple(movements),
                ),
            )
        )
    parsed.sort(key=lambda item: (item[0], item[1]))
    return tuple(p for _, _, p in parsed)


@dataclass
class FlowDefinitionEntity:
    """Domain entity for one version of a flow definition."""

    id: str
    tenant_id: str | None
    flow_key: str
    name: str
    version: int
    flow_json: dict[str, Any]
    description: str | None = None
    perils: list[str] = field(default_factory=list)
    property_types: list[str] = field(default_factory=list)
    is_active: bool = True
    is_system: bool = False
    phases: tuple[PhaseDefinition, ...] = field(init=False)
    gates: tuple[GateDefinition, ...] = field(init=False)

    def __post_init__(self) -> None:
        try:
            self.phases = parse_phases(self.flow_json)
            self.gates = tuple(
                GateDefinition.from_dict(g) for g in self.flow_json.get("gates") or []
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationException(
                f"Flow definition {self.id} has malformed flow_json: {exc}",
                field="flow_json",
            ) from exc

    @property
    def metadata(self) -> dict[str, Any]:
        return self.flow_json.get("metadata") or {}

    def declared_perils(self) -> set[str]:
        """Normalised perils from the peril column and the JSON metadata."""
        perils = {normalize_peril(p) for p in self.perils if p}
        primary = self.metadata.get("primary_peril")
        if primary:
            perils.add(normalize_peril(primary))
        for secondary in self.metadata.get("secondary_perils") or []:
            perils.add(normalize_peril(secondary))
        return perils

    def matches_peril(self, peril: str) -> bool:
        return normalize_peril(peril) in self.declared_perils()

    def is_primary_peril(self, peril: str) -> bool:
        primary = self.metadata.get("primary_peril")
        if primary:
            return normalize_peril(primary) == normalize_peril(peril)
        return bool(self.perils) and normalize_peril(self.perils[0]) == normalize_peril(peril)

    def matches_property_type(self, property_type: str | None) -> bool:
        """Definitions without property types accept any property."""
        if not self.property_types or not property_type:
            return True
        wanted = property_type.strip().lower()
        return any(p.strip().lower() == wanted for p in self.property_types)

    def get_phase(self, phase_id: str) -> PhaseDefinition | None:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def phase_index(self, phase_id: str) -> int | None:
        for index, phase in enumerate(self.phases):
            if phase.id == phase_id:
                return index
        return None

    def get_gate(self, gate_id: str) -> GateDefinition | None:
        for gate in self.gates:
            if gate.id == gate_id:
                return gate
        return None

    def gate_from_phase(self, phase_id: str) -> GateDefinition | None:
        """First gate declared with ``from_phase == phase_id``."""
        for gate in self.gates:
            if gate.from_phase == phase_id:
                return gate
        return None

    def total_template_movements(self) -> int:
        return sum(len(p.movements) for p in self.phases)
