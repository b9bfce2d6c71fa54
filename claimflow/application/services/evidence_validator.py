"""Evidence aggregation and validation for movements.

Evidence for a movement comes from four sources: direct evidence links,
claim photos, audio observations, and inline ``evidence_data`` blobs on
completion rows. The aggregator merges them into one list deduplicated by
``(type, reference_id)``; the validator checks the list against the
movement's declared requirements and optionally asks the model to judge
quality.
"""

from __future__ import annotations

from collections import Counter
from typing import Any

from claimflow.application.dtos.flow_engine import (
    EvidenceItem,
    EvidenceValidationResult,
    MovementCompletionResult,
)
from claimflow.application.interfaces.repositories import (
    IClaimMediaRepository,
    IMovementCompletionRepository,
    IMovementEvidenceRepository,
)
from claimflow.application.interfaces.services import ILanguageModel, IPromptRenderer
from claimflow.domain.enums import EvidenceType
from claimflow.domain.exceptions import AIResponseException
from claimflow.domain.value_objects.flow import MovementDefinition, normalize_evidence_type
from claimflow.shared.logging import get_logger

logger = get_logger(__name__)

EVIDENCE_PROMPT_KEY = "flow.evidence_validation"
DETERMINISTIC_CONFIDENCE = 0.8
AI_DEFAULT_CONFIDENCE = 0.9

SOURCE_DIRECT = "direct"
SOURCE_PHOTO = "claim_photo"
SOURCE_AUDIO = "audio_observation"
SOURCE_INLINE = "completion"


def inline_evidence_items(completion: MovementCompletionResult) -> list[EvidenceItem]:
    """Expand a completion's evidence_data blob into EvidenceItems.

    Accepted shape: ``{"photos": [...], "audio_ids": [...], "measurements": [...],
    "sketches": [...], "notes": [...]}``; entries are ids or objects with an ``id``.
    """
    items: list[EvidenceItem] = []
    for key, values in (completion.evidence_data or {}).items():
        evidence_type = normalize_evidence_type(key)
        if evidence_type is None:
            continue
        if not isinstance(values, list):
            values = [values]
        for value in values:
            if isinstance(value, dict):
                reference_id = value.get("id") or value.get("reference_id")
                data = dict(value)
            elif evidence_type == EvidenceType.NOTE:
                reference_id = None
                data = {"text": value}
            else:
                reference_id = str(value)
                data = {}
            items.append(
                EvidenceItem(
                    type=evidence_type.value,
                    source=SOURCE_INLINE,
                    reference_id=str(reference_id) if reference_id is not None else None,
                    data=data,
                    created_at=completion.completed_at,
                )
            )
    return items


def dedupe_evidence(items: list[EvidenceItem]) -> list[EvidenceItem]:
    """Keep the first item per (type, reference_id); items without a reference are all kept."""
    seen: set[tuple[str, str]] = set()
    out: list[EvidenceItem] = []
    for item in items:
        if item.reference_id is not None:
            marker = (item.type, item.reference_id)
            if marker in seen:
                continue
            seen.add(marker)
        out.append(item)
    return out


class EvidenceAggregator:
    """Collects evidence for a movement from every source."""

    def __init__(
        self,
        evidence_repo: IMovementEvidenceRepository,
        media_repo: IClaimMediaRepository,
        completion_repo: IMovementCompletionRepository,
    ) -> None:
        self.evidence_repo = evidence_repo
        self.media_repo = media_repo
        self.completion_repo = completion_repo

    async def collect(
        self, tenant_id: str, flow_instance_id: str, movement_key: str
    ) -> list[EvidenceItem]:
        items: list[EvidenceItem] = []
        for link in await self.evidence_repo.list_for_movement(tenant_id, flow_instance_id, movement_key):
            evidence_type = normalize_evidence_type(link.evidence_type)
            items.append(
                EvidenceItem(
                    type=evidence_type.value if evidence_type else link.evidence_type,
                    source=SOURCE_DIRECT,
                    reference_id=link.reference_id,
                    data=link.evidence_data,
                    created_at=link.created_at,
                )
            )
        for photo in await self.media_repo.list_photos(tenant_id, flow_instance_id, movement_key):
            items.append(
                EvidenceItem(
                    type=EvidenceType.PHOTO.value,
                    source=SOURCE_PHOTO,
                    reference_id=photo.id,
                    data={"storage_url": photo.storage_url, "label": photo.label, "analysis": photo.analysis},
                    created_at=photo.created_at,
                )
            )
        for audio in await self.media_repo.list_audio(tenant_id, flow_instance_id, movement_key):
            items.append(
                EvidenceItem(
                    type=EvidenceType.AUDIO.value,
                    source=SOURCE_AUDIO,
                    reference_id=audio.id,
                    data={"audio_url": audio.audio_url, "transcription": audio.transcription},
                    created_at=audio.created_at,
                )
            )
        for completion in await self.completion_repo.list_for_movement(
            tenant_id, flow_instance_id, movement_key
        ):
            items.extend(inline_evidence_items(completion))
        return dedupe_evidence(items)


def check_requirements(
    movement: MovementDefinition, evidence: list[EvidenceItem]
) -> EvidenceValidationResult:
    """Deterministic presence check of quantity_min per required evidence type."""
    counts = Counter(item.type for item in evidence)
    missing: list[str] = []
    issues: list[str] = []
    for requirement in movement.evidence_requirements:
        count = counts.get(requirement.type.value, 0)
        label = requirement.description or requirement.type.value
        if requirement.is_required and count < requirement.quantity_min:
            missing.append(
                f"At least {requirement.quantity_min} {requirement.type.value} required "
                f"({label}); {count} provided"
            )
        if requirement.quantity_max is not None and count > requirement.quantity_max:
            issues.append(
                f"At most {requirement.quantity_max} {requirement.type.value} expected "
                f"({label}); {count} provided"
            )
    return EvidenceValidationResult(
        is_valid=not missing,
        missing_items=missing,
        quality_issues=issues,
        confidence=DETERMINISTIC_CONFIDENCE,
        ai_assessed=False,
        evidence_counts=dict(counts),
    )


class EvidenceValidator:
    """Deterministic requirement check, refined by an optional AI quality assessment."""

    def __init__(
        self,
        language_model: ILanguageModel | None,
        prompt_renderer: IPromptRenderer,
        *,
        model: str | None = None,
    ) -> None:
        self.language_model = language_model
        self.prompt_renderer = prompt_renderer
        self.model = model

    async def validate(
        self,
        movement: MovementDefinition,
        evidence: list[EvidenceItem],
        *,
        use_ai: bool = False,
        claim_context: dict[str, Any] | None = None,
    ) -> EvidenceValidationResult:
        baseline = check_requirements(movement, evidence)
        if not use_ai or self.language_model is None:
            return baseline
        system_prompt, user_prompt, temperature = self.prompt_renderer.render(
            EVIDENCE_PROMPT_KEY,
            {
                "movement": movement.to_dict(),
                "requirements": [r.to_dict() for r in movement.evidence_requirements],
                "evidence": [
                    {"type": e.type, "source": e.source, "reference_id": e.reference_id, "data": e.data}
                    for e in evidence
                ],
                "claim": claim_context or {},
            },
        )
        try:
            response = await self.language_model.complete_json(
                system_prompt, user_prompt, temperature=temperature, model=self.model
            )
            ai_valid = response.get("is_valid", True)
            ai_missing = response.get("missing_items") or []
            ai_issues = response.get("quality_issues") or []
            confidence = float(response.get("confidence", AI_DEFAULT_CONFIDENCE))
            if not isinstance(ai_valid, bool) or not isinstance(ai_missing, list) or not isinstance(ai_issues, list):
                raise AIResponseException("Evidence validation response has invalid shape", EVIDENCE_PROMPT_KEY)
        except (AIResponseException, TypeError, ValueError) as exc:
            logger.warning(
                "AI evidence validation failed for movement %s; using rule check: %s",
                movement.key,
                exc,
            )
            return baseline

        missing = list(baseline.missing_items)
        missing.extend(str(m) for m in ai_missing if str(m) not in missing)
        return EvidenceValidationResult(
            is_valid=baseline.is_valid and ai_valid,
            missing_items=missing,
            quality_issues=[*baseline.quality_issues, *(str(i) for i in ai_issues)],
            confidence=max(0.0, min(confidence, 1.0)),
            ai_assessed=True,
            evidence_counts=baseline.evidence_counts,
        )
