"""Flow instance domain entity: the per-claim inspection state machine.

The instance owns the mutable progress (phase pointer, completed keys,
dynamic movements); the definition it runs against is passed into each
method. Methods only change the entity in memory; persisting the new state
with an optimistic version check is the caller's job.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from claimflow.domain.entities.flow_definition import FlowDefinitionEntity
from claimflow.domain.enums import FlowInstanceStatus, NextStepKind
from claimflow.domain.exceptions import (
    FlowStateException,
    ResourceNotFoundException,
    ValidationException,
)
from claimflow.domain.value_objects.flow import (
    GateDefinition,
    MovementDefinition,
    PhaseDefinition,
)
from claimflow.shared.utils.datetime import utc_now


@dataclass(frozen=True)
class NextStep:
    """Tagged result of the movement executor scan.

    ``phase_advanced`` is True when the scan moved past at least one phase
    before finding the returned movement or gate.
    """

    kind: NextStepKind
    phase: PhaseDefinition | None = None
    movement: MovementDefinition | None = None
    gate: GateDefinition | None = None
    phase_advanced: bool = False


@dataclass
class FlowInstanceEntity:
    """Mutable run of a flow definition for one claim."""

    id: str
    tenant_id: str
    claim_id: str
    flow_definition_id: str
    status: FlowInstanceStatus = FlowInstanceStatus.ACTIVE
    current_phase_index: int = 0
    current_phase_id: str | None = None
    current_movement_key: str | None = None
    completed_movement_keys: set[str] = field(default_factory=set)
    dynamic_movements: list[dict[str, Any]] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)
    version: int = 1
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # ---- status ---------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.status == FlowInstanceStatus.ACTIVE

    def ensure_active(self) -> None:
        """Raise FlowStateException unless the instance accepts progress changes."""
        if self.status != FlowInstanceStatus.ACTIVE:
            raise FlowStateException(
                f"Flow instance is {self.status.value}, not active",
                flow_instance_id=self.id,
                status=self.status.value,
            )

    def pause(self) -> None:
        if self.status != FlowInstanceStatus.ACTIVE:
            raise FlowStateException(
                "Only active flows can be paused", flow_instance_id=self.id, status=self.status.value
            )
        self.status = FlowInstanceStatus.PAUSED

    def resume(self) -> None:
        if self.status != FlowInstanceStatus.PAUSED:
            raise FlowStateException(
                "Only paused flows can be resumed", flow_instance_id=self.id, status=self.status.value
            )
        self.status = FlowInstanceStatus.ACTIVE

    def cancel(self, reason: str | None = None) -> None:
        if self.status.is_terminal:
            raise FlowStateException(
                f"Flow instance is already {self.status.value}",
                flow_instance_id=self.id,
                status=self.status.value,
            )
        self.status = FlowInstanceStatus.CANCELLED
        self.context = {
            **self.context,
            "cancel_reason": reason,
            "cancelled_at": utc_now().isoformat(),
        }

    # ---- movement lookup ------------------------------------------------

    def dynamic_movements_for_phase(self, phase_id: str) -> list[MovementDefinition]:
        movements = [
            MovementDefinition.from_dict(phase_id, m, position=i, is_dynamic=True)
            for i, m in enumerate(self.dynamic_movements)
            if m.get("phase_id") == phase_id
        ]
        movements.sort(key=lambda m: m.sequence_order)
        return movements

    def phase_movements(
        self, definition: FlowDefinitionEntity, phase: PhaseDefinition
    ) -> list[MovementDefinition]:
        """Template movements then dynamic movements of the phase, each in sequence order."""
        return [*phase.movements, *self.dynamic_movements_for_phase(phase.id)]

    def all_movements(self, definition: FlowDefinitionEntity) -> list[MovementDefinition]:
        movements: list[MovementDefinition] = []
        for phase in definition.phases:
            movements.extend(self.phase_movements(definition, phase))
        return movements

    def current_phase(self, definition: FlowDefinitionEntity) -> PhaseDefinition | None:
        if 0 <= self.current_phase_index < len(definition.phases):
            return definition.phases[self.current_phase_index]
        return None

    def find_movement(
        self,
        definition: FlowDefinitionEntity,
        movement_id: str,
        phase_id: str | None = None,
    ) -> MovementDefinition | None:
        """Find a template or dynamic movement by id, optionally within one phase."""
        for movement in self.all_movements(definition):
            if movement.id == movement_id and (phase_id is None or movement.phase_id == phase_id):
                return movement
        return None

    def require_current_phase_movement(
        self, definition: FlowDefinitionEntity, movement_id: str
    ) -> MovementDefinition:
        """Return the movement from the current phase.

        Raises:
            FlowStateException: No current phase, or the movement belongs to another phase.
            ResourceNotFoundException: The movement id is unknown to the flow.
        """
        phase = self.current_phase(definition)
        if phase is None:
            raise FlowStateException("Flow has no current phase", flow_instance_id=self.id)
        movement = self.find_movement(definition, movement_id, phase.id)
        if movement is not None:
            return movement
        elsewhere = self.find_movement(definition, movement_id)
        if elsewhere is not None:
            raise FlowStateException(
                f"Movement {movement_id} belongs to phase {elsewhere.phase_id}, "
                f"current phase is {phase.id}",
                flow_instance_id=self.id,
                movement_id=movement_id,
                current_phase_id=phase.id,
            )
        raise ResourceNotFoundException("movement", movement_id)

    def is_completed(self, movement: MovementDefinition) -> bool:
        return movement.key in self.completed_movement_keys

    def missing_required(
        self, definition: FlowDefinitionEntity, phase: PhaseDefinition
    ) -> list[MovementDefinition]:
        return [
            m
            for m in self.phase_movements(definition, phase)
            if m.is_required and not self.is_completed(m)
        ]

    def required_satisfied(self, definition: FlowDefinitionEntity) -> bool:
        """True when every required movement of the current phase is in the completed set."""
        phase = self.current_phase(definition)
        return phase is not None and not self.missing_required(definition, phase)

    # ---- executor -------------------------------------------------------

    def resolve_next(self, definition: FlowDefinitionEntity, *, advance: bool) -> NextStep:
        """Scan for the next pending movement or gate.

        With ``advance=False`` the scan is side-effect free. With
        ``advance=True`` phases without a gate whose movements are all done
        are advanced past, and running past the last phase completes the flow.
        """
        if self.status == FlowInstanceStatus.COMPLETED:
            return NextStep(kind=NextStepKind.COMPLETE)
        index = self.current_phase_index
        advanced = False
        while index < len(definition.phases):
            phase = definition.phases[index]
            for movement in self.phase_movements(definition, phase):
                if not self.is_completed(movement):
                    if advance and advanced:
                        self._move_to_phase(definition, index)
                    return NextStep(
                        kind=NextStepKind.MOVEMENT,
                        phase=phase,
                        movement=movement,
                        phase_advanced=advanced,
                    )
            gate = definition.gate_from_phase(phase.id)
            if gate is not None:
                if advance and advanced:
                    self._move_to_phase(definition, index)
                return NextStep(
                    kind=NextStepKind.GATE, phase=phase, gate=gate, phase_advanced=advanced
                )
            index += 1
            advanced = True
        if advance:
            self._move_to_phase(definition, index)
        return NextStep(kind=NextStepKind.COMPLETE, phase_advanced=advanced)

    def mark_completed(self, movement: MovementDefinition) -> bool:
        """Add the movement key to the completed set; False when it was already there."""
        if self.current_movement_key == movement.key:
            self.current_movement_key = None
        if movement.key in self.completed_movement_keys:
            return False
        self.completed_movement_keys = {*self.completed_movement_keys, movement.key}
        return True

    def advance_phase(
        self, definition: FlowDefinitionEntity, to_phase_id: str | None = None
    ) -> bool:
        """Move the phase pointer forward; returns True when the flow completed.

        ``to_phase_id`` jumps ahead to a later phase (a gate's target); an
        unknown or earlier target falls back to the next phase.
        """
        target = self.current_phase_index + 1
        if to_phase_id:
            index = definition.phase_index(to_phase_id)
            if index is not None and index > self.current_phase_index:
                target = index
        self._move_to_phase(definition, target)
        return self.status == FlowInstanceStatus.COMPLETED

    def go_to(self, definition: FlowDefinitionEntity, movement: MovementDefinition) -> None:
        """Point the instance at a movement of the current or an earlier phase.

        Later phases are only reached through completion and gates.

        Raises:
            ValidationException: The movement's phase is not in the definition.
            FlowStateException: The movement belongs to a later phase.
        """
        index = definition.phase_index(movement.phase_id)
        if index is None:
            raise ValidationException(f"Unknown phase: {movement.phase_id}", field="phase_id")
        if index > self.current_phase_index:
            raise FlowStateException(
                f"Cannot navigate forward to phase {movement.phase_id}; "
                "complete the current phase first",
                flow_instance_id=self.id,
                current_phase_id=self.current_phase_id,
                target_phase_id=movement.phase_id,
            )
        self.current_phase_index = index
        self.current_phase_id = movement.phase_id
        self.current_movement_key = movement.key

    def current_movement(self, definition: FlowDefinitionEntity) -> MovementDefinition | None:
        """Navigated-to movement when it is in the current phase, else the next pending one."""
        phase = self.current_phase(definition)
        if phase is None:
            return None
        if self.current_movement_key:
            for movement in self.phase_movements(definition, phase):
                if movement.key == self.current_movement_key:
                    return movement
        step = self.resolve_next(definition, advance=False)
        if step.kind == NextStepKind.MOVEMENT and step.movement and step.movement.phase_id == phase.id:
            return step.movement
        return None

    def previous_movement(self, definition: FlowDefinitionEntity) -> MovementDefinition | None:
        """Movement before the current one in flow order, across phase boundaries."""
        ordered = self.all_movements(definition)
        if not ordered:
            return None
        current = self.current_movement(definition)
        if current is None:
            phase = self.current_phase(definition)
            if phase is None:
                return ordered[-1]
            # Gate pending: the last movement of the current phase precedes it.
            in_phase = [m for m in ordered if m.phase_id == phase.id]
            return in_phase[-1] if in_phase else None
        for position, movement in enumerate(ordered):
            if movement.key == current.key:
                return ordered[position - 1] if position > 0 else None
        return None

    def add_dynamic_movement(
        self, definition: FlowDefinitionEntity, movement: MovementDefinition
    ) -> None:
        """Append a dynamic movement; its key must not collide with any existing movement."""
        if self.find_movement(definition, movement.id, movement.phase_id) is not None:
            raise ValidationException(
                f"Dynamic movement key already exists: {movement.key}", field="id"
            )
        self.dynamic_movements = [*self.dynamic_movements, movement.to_dict()]

    def _move_to_phase(self, definition: FlowDefinitionEntity, index: int) -> None:
        self.current_movement_key = None
        if index >= len(definition.phases):
            self.current_phase_index = len(definition.phases)
            self.current_phase_id = None
            self.status = FlowInstanceStatus.COMPLETED
            self.completed_at = utc_now()
            return
        self.current_phase_index = index
        self.current_phase_id = definition.phases[index].id


def new_instance_state(definition: FlowDefinitionEntity) -> tuple[int, str | None]:
    """Initial ``(current_phase_index, current_phase_id)`` for a fresh instance."""
    if not definition.phases:
        return 0, None
    return 0, definition.phases[0].id
