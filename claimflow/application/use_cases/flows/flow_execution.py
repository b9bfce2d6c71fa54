"""Movement executor: next-step scan, completion, skip, gates and phase advancement.

State changes go through FlowInstanceStore (version-checked writes);
audit rows (movement completions, gate evaluations) are appended after
the state write succeeds.
"""

from __future__ import annotations

from typing import Any

from claimflow.application.dtos.flow_engine import (
    CompleteMovementResult,
    FinalizationBlocker,
    FinalizationResult,
    GateEvaluationCreate,
    GateOutcome,
    MovementCompletionCreate,
    NextMovementResult,
    PhaseAdvanceResult,
    SkipMovementResult,
)
from claimflow.application.interfaces.repositories import (
    IGateEvaluationRepository,
    IMovementCompletionRepository,
    IMovementEvidenceRepository,
)
from claimflow.application.services.flow_instance_store import FlowInstanceStore
from claimflow.application.services.gate_evaluator import (
    GateContext,
    GateEvaluator,
    completion_evidence_types,
)
from claimflow.domain.entities.flow_definition import FlowDefinitionEntity
from claimflow.domain.entities.flow_instance import FlowInstanceEntity, NextStep
from claimflow.domain.enums import (
    CompletionStatus,
    FlowInstanceStatus,
    GateResult,
    NextStepKind,
)
from claimflow.domain.exceptions import FlowStateException, ResourceNotFoundException
from claimflow.domain.value_objects.flow import (
    GateDefinition,
    MovementDefinition,
    PhaseDefinition,
    normalize_evidence_type,
)
from claimflow.shared.logging import get_logger

logger = get_logger(__name__)


def _to_next_result(instance: FlowInstanceEntity, step: NextStep) -> NextMovementResult:
    return NextMovementResult(
        kind=step.kind,
        flow_instance_id=instance.id,
        phase=step.phase,
        movement=step.movement,
        gate=step.gate,
        phase_advanced=step.phase_advanced,
        flow_completed=instance.status == FlowInstanceStatus.COMPLETED,
    )


class FlowExecutionService:
    """Drives a flow instance through its phases."""

    def __init__(
        self,
        store: FlowInstanceStore,
        completion_repo: IMovementCompletionRepository,
        evidence_repo: IMovementEvidenceRepository,
        gate_evaluation_repo: IGateEvaluationRepository,
        gate_evaluator: GateEvaluator,
        *,
        auto_evaluate_gates: bool = True,
    ) -> None:
        self.store = store
        self.completion_repo = completion_repo
        self.evidence_repo = evidence_repo
        self.gate_evaluation_repo = gate_evaluation_repo
        self.gate_evaluator = gate_evaluator
        self.auto_evaluate_gates = auto_evaluate_gates

    # ---- executor -------------------------------------------------------

    async def get_next_movement(self, tenant_id: str, instance_id: str) -> NextMovementResult:
        """Return the next movement or pending gate, advancing past finished gate-less phases.

        Only active instances advance; paused or cancelled ones are scanned read-only.
        """
        entity, definition = await self.store.load(tenant_id, instance_id)
        if not entity.is_active:
            return _to_next_result(entity, entity.resolve_next(definition, advance=False))

        async def scan(e: FlowInstanceEntity, d: FlowDefinitionEntity) -> NextStep:
            return e.resolve_next(d, advance=e.is_active)

        step, saved, _ = await self.store.mutate(tenant_id, instance_id, scan)
        if step.phase_advanced:
            logger.info(
                "Flow %s advanced to phase %s while scanning for next movement",
                instance_id,
                saved.current_phase_id or "<complete>",
            )
        return _to_next_result(saved, step)

    async def peek_next_movement(self, tenant_id: str, instance_id: str) -> NextMovementResult:
        """Same scan as get_next_movement without any state change."""
        entity, definition = await self.store.load(tenant_id, instance_id)
        return _to_next_result(entity, entity.resolve_next(definition, advance=False))

    async def get_current_phase(self, tenant_id: str, instance_id: str) -> PhaseDefinition | None:
        entity, definition = await self.store.load(tenant_id, instance_id)
        return entity.current_phase(definition)

    async def get_current_movement(
        self, tenant_id: str, instance_id: str
    ) -> MovementDefinition | None:
        entity, definition = await self.store.load(tenant_id, instance_id)
        return entity.current_movement(definition)

    async def get_previous_movement(
        self, tenant_id: str, instance_id: str
    ) -> MovementDefinition | None:
        entity, definition = await self.store.load(tenant_id, instance_id)
        return entity.previous_movement(definition)

    async def go_to_movement(
        self, tenant_id: str, instance_id: str, movement_id: str, phase_id: str | None = None
    ) -> NextMovementResult:
        """Point the instance at a movement of the current or an earlier phase.

        The completed set is left untouched. Raises FlowStateException for a later phase.
        """

        async def navigate(e: FlowInstanceEntity, d: FlowDefinitionEntity) -> MovementDefinition:
            e.ensure_active()
            movement = e.find_movement(d, movement_id, phase_id)
            if movement is None:
                raise ResourceNotFoundException("movement", movement_id)
            e.go_to(d, movement)
            return movement

        movement, saved, definition = await self.store.mutate(tenant_id, instance_id, navigate)
        logger.info("Flow %s navigated to %s", instance_id, movement.key)
        return NextMovementResult(
            kind=NextStepKind.MOVEMENT,
            flow_instance_id=saved.id,
            phase=saved.current_phase(definition),
            movement=movement,
        )

    # ---- completion / skip ---------------------------------------------

    async def complete_movement(
        self,
        tenant_id: str,
        instance_id: str,
        movement_id: str,
        *,
        evidence: dict[str, Any] | None = None,
        completed_by: str | None = None,
        notes: str | None = None,
    ) -> CompleteMovementResult:
        """Mark a current-phase movement completed, then run the phase advancement check.

        Raises:
            FlowStateException: Instance not active, or movement in another phase.
            ResourceNotFoundException: Instance or movement not found.
        """

        async def complete(
            e: FlowInstanceEntity, d: FlowDefinitionEntity
        ) -> tuple[MovementDefinition, bool]:
            e.ensure_active()
            movement = e.require_current_phase_movement(d, movement_id)
            return movement, e.mark_completed(movement)

        (movement, newly_completed), saved, _ = await self.store.mutate(
            tenant_id, instance_id, complete
        )
        completion = await self.completion_repo.create(
            tenant_id,
            MovementCompletionCreate(
                flow_instance_id=saved.id,
                claim_id=saved.claim_id,
                movement_key=movement.key,
                phase_id=movement.phase_id,
                movement_id=movement.id,
                status=CompletionStatus.COMPLETED.value,
                completed_by=completed_by,
                notes=notes,
                evidence_data=evidence or {},
            ),
        )
        logger.info(
            "Movement %s completed on flow %s%s",
            movement.key,
            instance_id,
            "" if newly_completed else " (already completed)",
        )
        advance = await self._check_phase_advancement(tenant_id, instance_id, movement.phase_id)
        return CompleteMovementResult(
            completion=completion,
            phase_advanced=advance.phase_advanced,
            flow_completed=advance.flow_completed,
            gate_pending=advance.gate_pending,
            already_completed=not newly_completed,
            gate_outcome=advance.gate_outcome,
        )

    async def skip_movement(
        self,
        tenant_id: str,
        instance_id: str,
        movement_id: str,
        *,
        reason: str | None = None,
        skipped_by: str | None = None,
        force: bool = False,
    ) -> SkipMovementResult:
        """Skip a current-phase movement.

        A required movement without ``force`` is not skipped: the result
        carries ``skipped=False`` and a warning, and nothing is written.
        A forced skip of a required movement is recorded with
        ``skipped_required=True`` and blocks finalization.
        """
        entity, definition = await self.store.load(tenant_id, instance_id)
        entity.ensure_active()
        candidate = entity.require_current_phase_movement(definition, movement_id)
        if candidate.is_required and not force:
            return SkipMovementResult(
                skipped=False,
                was_required=True,
                warning=(
                    f"Movement '{candidate.name}' is required. Pass force=true to skip it; "
                    "the flow cannot be finalized until it is completed."
                ),
            )

        async def skip(e: FlowInstanceEntity, d: FlowDefinitionEntity) -> MovementDefinition:
            e.ensure_active()
            movement = e.require_current_phase_movement(d, movement_id)
            e.mark_completed(movement)
            return movement

        movement, saved, _ = await self.store.mutate(tenant_id, instance_id, skip)
        completion = await self.completion_repo.create(
            tenant_id,
            MovementCompletionCreate(
                flow_instance_id=saved.id,
                claim_id=saved.claim_id,
                movement_key=movement.key,
                phase_id=movement.phase_id,
                movement_id=movement.id,
                status=CompletionStatus.SKIPPED.value,
                completed_by=skipped_by,
                notes=reason,
                skipped_required=movement.is_required,
            ),
        )
        if movement.is_required:
            logger.warning(
                "Required movement %s force-skipped on flow %s by %s",
                movement.key,
                instance_id,
                skipped_by,
            )
        advance = await self._check_phase_advancement(tenant_id, instance_id, movement.phase_id)
        return SkipMovementResult(
            skipped=True,
            was_required=movement.is_required,
            warning="Required movement skipped; finalization is blocked" if movement.is_required else None,
            completion=completion,
            phase_advanced=advance.phase_advanced,
            flow_completed=advance.flow_completed,
            gate_pending=advance.gate_pending,
            gate_outcome=advance.gate_outcome,
        )

    async def can_finalize_flow(self, tenant_id: str, instance_id: str) -> FinalizationResult:
        """Blockers: unresolved forced skips of required movements and missing required movements."""
        entity, definition = await self.store.load(tenant_id, instance_id)
        completions = await self.completion_repo.list_for_instance(tenant_id, instance_id)
        names = {m.key: m.name for m in entity.all_movements(definition)}
        blockers: list[FinalizationBlocker] = []

        if entity.status == FlowInstanceStatus.CANCELLED:
            blockers.append(
                FinalizationBlocker(
                    movement_key="",
                    movement_name=None,
                    reason="flow_cancelled",
                    message="Flow was cancelled",
                )
            )

        # Rows are chronological: a later completed row clears an earlier forced skip.
        unresolved: dict[str, bool] = {}
        for row in completions:
            if row.status == CompletionStatus.SKIPPED.value and row.skipped_required:
                unresolved[row.movement_key] = True
            elif row.status == CompletionStatus.COMPLETED.value:
                unresolved.pop(row.movement_key, None)
        for key in unresolved:
            blockers.append(
                FinalizationBlocker(
                    movement_key=key,
                    movement_name=names.get(key),
                    reason="skipped_required",
                    message=f"Required movement '{names.get(key, key)}' was skipped",
                )
            )

        for phase in definition.phases:
            for movement in entity.missing_required(definition, phase):
                blockers.append(
                    FinalizationBlocker(
                        movement_key=movement.key,
                        movement_name=movement.name,
                        reason="missing_required",
                        message=f"Required movement '{movement.name}' has not been completed",
                    )
                )
        return FinalizationResult(can_finalize=not blockers, blockers=blockers)

    # ---- gates / advancement -------------------------------------------

    async def evaluate_gate(self, tenant_id: str, instance_id: str, gate_id: str) -> GateOutcome:
        """Evaluate the gate leaving the current phase and advance on pass.

        Raises:
            ResourceNotFoundException: Gate not in the flow.
            FlowStateException: Instance not active, or gate does not leave the current phase.
        """
        entity, definition = await self.store.load(tenant_id, instance_id)
        entity.ensure_active()
        gate = definition.get_gate(gate_id)
        if gate is None:
            raise ResourceNotFoundException("gate", gate_id)
        if gate.from_phase != entity.current_phase_id:
            raise FlowStateException(
                f"Gate {gate_id} leaves phase {gate.from_phase}, current phase is {entity.current_phase_id}",
                flow_instance_id=instance_id,
                gate_id=gate_id,
            )
        phase = entity.current_phase(definition)
        missing = entity.missing_required(definition, phase) if phase else []
        if missing:
            reason = "Required movements not completed: " + ", ".join(m.id for m in missing)
            await self._record_evaluation(
                tenant_id, instance_id, gate, False, reason, {"missing": [m.key for m in missing]}
            )
            return GateOutcome(
                gate_id=gate.id,
                passed=False,
                reason=reason,
                evaluation_type=gate.evaluation_type.value,
                gate_blocked=True,
                advisory=not gate.is_blocking,
                phase_advanced=False,
                flow_completed=False,
                current_phase_id=entity.current_phase_id,
            )
        return await self._evaluate_and_apply(tenant_id, entity, definition, gate)

    async def advance_to_next_phase(self, tenant_id: str, instance_id: str) -> PhaseAdvanceResult:
        """Advance explicitly; required movements must be done and an outgoing gate must pass.

        Raises:
            FlowStateException: Instance not active or required movements missing.
        """
        entity, definition = await self.store.load(tenant_id, instance_id)
        entity.ensure_active()
        phase = entity.current_phase(definition)
        if phase is None:
            raise FlowStateException("Flow has no current phase", flow_instance_id=instance_id)
        missing = entity.missing_required(definition, phase)
        if missing:
            raise FlowStateException(
                f"Cannot leave phase {phase.id}: required movements not completed",
                flow_instance_id=instance_id,
                missing=[m.key for m in missing],
            )
        gate = definition.gate_from_phase(phase.id)
        if gate is not None:
            outcome = await self._evaluate_and_apply(tenant_id, entity, definition, gate)
            saved, _ = await self.store.load(tenant_id, instance_id)
            return PhaseAdvanceResult(
                phase_advanced=outcome.phase_advanced,
                flow_completed=outcome.flow_completed,
                current_phase=saved.current_phase(definition),
                gate_outcome=outcome,
            )
        return await self._advance(tenant_id, instance_id, phase.id, None)

    async def _check_phase_advancement(
        self, tenant_id: str, instance_id: str, phase_id: str
    ) -> PhaseAdvanceResult:
        entity, definition = await self.store.load(tenant_id, instance_id)
        current = entity.current_phase(definition)
        if not entity.is_active or current is None or current.id != phase_id:
            return PhaseAdvanceResult(False, entity.status == FlowInstanceStatus.COMPLETED, current)
        if not entity.required_satisfied(definition):
            return PhaseAdvanceResult(False, False, current)
        gate = definition.gate_from_phase(phase_id)
        if gate is None:
            return await self._advance(tenant_id, instance_id, phase_id, None)
        if not self.auto_evaluate_gates:
            return PhaseAdvanceResult(False, False, current, gate_pending=True)
        outcome = await self._evaluate_and_apply(tenant_id, entity, definition, gate)
        saved, _ = await self.store.load(tenant_id, instance_id)
        return PhaseAdvanceResult(
            phase_advanced=outcome.phase_advanced,
            flow_completed=outcome.flow_completed,
            current_phase=saved.current_phase(definition),
            gate_outcome=outcome,
            gate_pending=outcome.gate_blocked,
        )

    async def _advance(
        self, tenant_id: str, instance_id: str, from_phase_id: str, to_phase_id: str | None
    ) -> PhaseAdvanceResult:
        async def advance(e: FlowInstanceEntity, d: FlowDefinitionEntity) -> bool:
            # Another request may already have moved the instance on.
            if not e.is_active or e.current_phase_id != from_phase_id:
                return False
            e.advance_phase(d, to_phase_id)
            return True

        advanced, saved, definition = await self.store.mutate(tenant_id, instance_id, advance)
        completed = saved.status == FlowInstanceStatus.COMPLETED
        if advanced:
            if completed:
                logger.info("Flow %s completed after phase %s", instance_id, from_phase_id)
            else:
                logger.info(
                    "Flow %s advanced from phase %s to %s",
                    instance_id,
                    from_phase_id,
                    saved.current_phase_id,
                )
        return PhaseAdvanceResult(advanced, completed, saved.current_phase(definition))

    async def _evaluate_and_apply(
        self,
        tenant_id: str,
        entity: FlowInstanceEntity,
        definition: FlowDefinitionEntity,
        gate: GateDefinition,
    ) -> GateOutcome:
        completions = [
            c
            for c in await self.completion_repo.list_for_instance(tenant_id, entity.id)
            if c.phase_id == gate.from_phase
        ]
        evidence_types = completion_evidence_types(completions)
        prefix = f"{gate.from_phase}:"
        for link in await self.evidence_repo.list_for_instance(tenant_id, entity.id):
            if link.movement_key.startswith(prefix):
                evidence_type = normalize_evidence_type(link.evidence_type)
                if evidence_type is not None:
                    evidence_types.add(evidence_type.value)

        decision = await self.gate_evaluator.decide(
            GateContext(
                gate=gate,
                definition=definition,
                instance=entity,
                completions=completions,
                evidence_types=evidence_types,
            )
        )
        advisory = not gate.is_blocking
        advance = decision.passed or advisory
        result = PhaseAdvanceResult(False, False, entity.current_phase(definition))
        if advance:
            result = await self._advance(tenant_id, entity.id, gate.from_phase, gate.to_phase)
        await self._record_evaluation(
            tenant_id,
            entity.id,
            gate,
            decision.passed,
            decision.reason,
            {**decision.details, "advisory": advisory},
            evaluation_type=decision.evaluation_type,
        )
        log = logger.info if decision.passed else logger.warning
        log(
            "Gate %s on flow %s %s: %s",
            gate.id,
            entity.id,
            GateResult.PASSED.value if decision.passed else GateResult.FAILED.value,
            decision.reason,
        )
        return GateOutcome(
            gate_id=gate.id,
            passed=decision.passed,
            reason=decision.reason,
            evaluation_type=decision.evaluation_type,
            gate_blocked=not advance,
            advisory=advisory,
            phase_advanced=result.phase_advanced,
            flow_completed=result.flow_completed,
            current_phase_id=result.current_phase.id if result.current_phase else None,
            details=decision.details,
        )

    async def _record_evaluation(
        self,
        tenant_id: str,
        instance_id: str,
        gate: GateDefinition,
        passed: bool,
        reason: str | None,
        details: dict[str, Any],
        *,
        evaluation_type: str | None = None,
    ) -> None:
        await self.gate_evaluation_repo.create(
            tenant_id,
            GateEvaluationCreate(
                flow_instance_id=instance_id,
                gate_id=gate.id,
                result=GateResult.PASSED.value if passed else GateResult.FAILED.value,
                reason=reason,
                evaluation_type=evaluation_type or gate.evaluation_type.value,
                details=details,
            ),
        )

