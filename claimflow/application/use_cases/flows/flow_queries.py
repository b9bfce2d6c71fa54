"""Read-only views of a flow instance: progress, phases, movements and timeline."""

from __future__ import annotations

from collections import Counter

from claimflow.application.dtos.flow_engine import (
    FlowProgress,
    PhaseMovementStatus,
    PhaseSummary,
    TimelineEntry,
)
from claimflow.application.interfaces.repositories import (
    IMovementCompletionRepository,
    IMovementEvidenceRepository,
)
from claimflow.application.services.evidence_validator import inline_evidence_items
from claimflow.application.services.flow_instance_store import FlowInstanceStore
from claimflow.domain.exceptions import ResourceNotFoundException


class FlowQueryService:
    def __init__(
        self,
        store: FlowInstanceStore,
        completion_repo: IMovementCompletionRepository,
        evidence_repo: IMovementEvidenceRepository,
    ) -> None:
        self.store = store
        self.completion_repo = completion_repo
        self.evidence_repo = evidence_repo

    async def get_flow_progress(self, tenant_id: str, instance_id: str) -> FlowProgress:
        """Completed over total movements, template and dynamic alike.

        Completed keys that no longer resolve to a movement are not counted.
        """
        entity, definition = await self.store.load(tenant_id, instance_id)
        keys = {m.key for m in entity.all_movements(definition)}
        total = len(keys)
        completed = len(keys & entity.completed_movement_keys)
        percent = round(completed / total * 100, 2) if total else 0.0
        return FlowProgress(
            flow_instance_id=entity.id,
            status=entity.status.value,
            total=total,
            completed=completed,
            percent_complete=percent,
            current_phase_index=entity.current_phase_index,
            current_phase_id=entity.current_phase_id,
            total_phases=len(definition.phases),
        )

    async def get_flow_phases(self, tenant_id: str, instance_id: str) -> list[PhaseSummary]:
        entity, definition = await self.store.load(tenant_id, instance_id)
        summaries = []
        for index, phase in enumerate(definition.phases):
            movements = entity.phase_movements(definition, phase)
            done = sum(1 for m in movements if entity.is_completed(m))
            summaries.append(
                PhaseSummary(
                    id=phase.id,
                    name=phase.name,
                    description=phase.description,
                    sequence_order=phase.sequence_order,
                    movement_count=len(movements),
                    completed_movement_count=done,
                    is_completed=index < entity.current_phase_index,
                    is_current=index == entity.current_phase_index,
                )
            )
        return summaries

    async def get_phase_movements(
        self, tenant_id: str, instance_id: str, phase_id: str
    ) -> list[PhaseMovementStatus]:
        """Movements of one phase with their latest completion row, if any.

        Raises:
            ResourceNotFoundException: Instance or phase not found.
        """
        entity, definition = await self.store.load(tenant_id, instance_id)
        phase = definition.get_phase(phase_id)
        if phase is None:
            raise ResourceNotFoundException("phase", phase_id)
        completions = await self.completion_repo.list_for_instance(tenant_id, instance_id)
        latest = {}
        for completion in completions:
            if completion.phase_id == phase_id:
                latest[completion.movement_key] = completion
        statuses = []
        for movement in entity.phase_movements(definition, phase):
            row = latest.get(movement.key)
            statuses.append(
                PhaseMovementStatus(
                    movement=movement,
                    is_completed=entity.is_completed(movement),
                    status=row.status if row else None,
                    completed_at=row.completed_at if row else None,
                    notes=row.notes if row else None,
                )
            )
        return statuses

    async def get_flow_timeline(self, tenant_id: str, instance_id: str) -> list[TimelineEntry]:
        """Completion and skip rows in chronological order, with movement names and evidence counts."""
        entity, definition = await self.store.load(tenant_id, instance_id)
        names = {m.key: m.name for m in entity.all_movements(definition)}
        completions = await self.completion_repo.list_for_instance(tenant_id, instance_id)
        links = await self.evidence_repo.list_for_instance(tenant_id, instance_id)
        linked = Counter(link.movement_key for link in links)
        entries = [
            TimelineEntry(
                id=c.id,
                movement_key=c.movement_key,
                phase_id=c.phase_id,
                movement_id=c.movement_id,
                movement_name=names.get(c.movement_key),
                status=c.status,
                skipped_required=c.skipped_required,
                completed_by=c.completed_by,
                notes=c.notes,
                evidence_count=linked[c.movement_key] + len(inline_evidence_items(c)),
                completed_at=c.completed_at,
            )
            for c in completions
        ]
        entries.sort(key=lambda e: e.completed_at)
        return entries
