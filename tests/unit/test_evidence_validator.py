"""Tests for evidence aggregation (four sources, dedupe) and validation."""

from datetime import datetime, timezone

import pytest

from claimflow.application.dtos.flow_engine import (
    AudioObservationResult,
    ClaimPhotoResult,
    EvidenceItem,
    MovementCompletionCreate,
    MovementCompletionResult,
)
from claimflow.application.services.evidence_validator import (
    EvidenceAggregator,
    EvidenceValidator,
    check_requirements,
    dedupe_evidence,
    inline_evidence_items,
)
from claimflow.domain.exceptions import AIResponseException
from claimflow.domain.value_objects.flow import MovementDefinition
from claimflow.infrastructure.services import FlowPromptRenderer
from tests.fakes import (
    FakeClaimMediaRepository,
    FakeLanguageModel,
    FakeMovementCompletionRepository,
    FakeMovementEvidenceRepository,
)

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def _movement(requirements: list[dict]) -> MovementDefinition:
    return MovementDefinition.from_dict(
        "p1", {"id": "A", "name": "Front elevation", "evidence_requirements": requirements}
    )


def _photo(reference_id: str) -> EvidenceItem:
    return EvidenceItem(type="photo", source="direct", reference_id=reference_id, data={})


def test_dedupe_keeps_first_per_type_and_reference() -> None:
    items = [
        _photo("p1"),
        EvidenceItem(type="photo", source="claim_photo", reference_id="p1", data={}),
        EvidenceItem(type="audio", source="direct", reference_id="p1", data={}),
        EvidenceItem(type="note", source="completion", reference_id=None, data={"text": "a"}),
        EvidenceItem(type="note", source="completion", reference_id=None, data={"text": "b"}),
    ]
    deduped = dedupe_evidence(items)
    assert [(i.type, i.source) for i in deduped] == [
        ("photo", "direct"),
        ("audio", "direct"),
        ("note", "completion"),
        ("note", "completion"),
    ]


def test_inline_evidence_accepts_singular_id_keys() -> None:
    completion = MovementCompletionResult(
        id="mc1", tenant_id="t1", flow_instance_id="fi-1", claim_id="c1",
        movement_key="p1:A", phase_id="p1", movement_id="A", status="completed",
        skipped_required=False, completed_by=None, notes=None,
        evidence_data={"audioId": "au1", "photoId": "ph1", "weather": "rain"},
        completed_at=NOW,
    )
    items = inline_evidence_items(completion)
    assert [(i.type, i.reference_id) for i in items] == [("audio", "au1"), ("photo", "ph1")]
    assert {i.source for i in items} == {"completion"}


def test_check_requirements_reports_missing_and_excess() -> None:
    movement = _movement(
        [
            {"type": "photo", "quantity_min": 2, "quantity_max": 2},
            {"type": "measurement", "quantity_min": 1, "description": "Moisture reading"},
            {"type": "sketch", "is_required": False},
        ]
    )
    result = check_requirements(movement, [_photo("a"), _photo("b"), _photo("c")])
    assert result.is_valid is False
    assert result.missing_items == ["At least 1 measurement required (Moisture reading); 0 provided"]
    assert result.quality_issues == ["At most 2 photo expected (photo); 3 provided"]
    assert result.evidence_counts == {"photo": 3}
    assert result.confidence == 0.8
    assert result.ai_assessed is False


async def test_aggregator_merges_all_sources() -> None:
    evidence_repo = FakeMovementEvidenceRepository()
    media_repo = FakeClaimMediaRepository()
    completion_repo = FakeMovementCompletionRepository()
    await evidence_repo.create("t1", "fi-1", "p1:A", "photos", "ph1", {}, "u1")
    media_repo.photos = [
        ClaimPhotoResult(
            id="ph1", claim_id="c1", flow_instance_id="fi-1", movement_key="p1:A",
            storage_url="s3://a", label=None, analysis={}, created_at=NOW,
        ),
        ClaimPhotoResult(
            id="ph2", claim_id="c1", flow_instance_id="fi-1", movement_key="p1:A",
            storage_url="s3://b", label="roof", analysis={}, created_at=NOW,
        ),
        ClaimPhotoResult(
            id="ph3", claim_id="c1", flow_instance_id="fi-1", movement_key="p1:B",
            storage_url="s3://c", label=None, analysis={}, created_at=NOW,
        ),
    ]
    media_repo.audio = [
        AudioObservationResult(
            id="au1", claim_id="c1", flow_instance_id="fi-1", movement_key="p1:A",
            audio_url="s3://au", transcription="water stain", created_at=NOW,
        )
    ]
    await completion_repo.create(
        "t1",
        MovementCompletionCreate(
            flow_instance_id="fi-1",
            claim_id="c1",
            movement_key="p1:A",
            phase_id="p1",
            movement_id="A",
            status="completed",
            evidence_data={"photos": ["ph2", "ph9"], "voiceNotes": ["au1"], "notes": ["looks wet"]},
        ),
    )

    items = await EvidenceAggregator(evidence_repo, media_repo, completion_repo).collect("t1", "fi-1", "p1:A")

    by_type: dict[str, list[str | None]] = {}
    for item in items:
        by_type.setdefault(item.type, []).append(item.reference_id)
    assert by_type == {"photo": ["ph1", "ph2", "ph9"], "audio": ["au1"], "note": [None]}
    assert items[0].source == "direct"


async def test_validator_without_ai_returns_rule_result() -> None:
    model = FakeLanguageModel({"is_valid": False})
    validator = EvidenceValidator(model, FlowPromptRenderer())
    result = await validator.validate(_movement([{"type": "photo"}]), [_photo("a")], use_ai=False)
    assert result.is_valid is True
    assert model.calls == []


async def test_validator_merges_ai_assessment() -> None:
    model = FakeLanguageModel(
        {"is_valid": False, "missing_items": ["Close-up of stain"], "quality_issues": ["Blurry"], "confidence": 1.4}
    )
    validator = EvidenceValidator(model, FlowPromptRenderer())
    result = await validator.validate(
        _movement([{"type": "photo", "quantity_min": 1}]),
        [_photo("a")],
        use_ai=True,
        claim_context={"policy": "HO-3"},
    )
    assert result.is_valid is False
    assert result.missing_items == ["Close-up of stain"]
    assert result.quality_issues == ["Blurry"]
    assert result.confidence == 1.0
    assert result.ai_assessed is True
    assert "HO-3" in model.calls[0]["user"]


@pytest.mark.parametrize(
    "response",
    [AIResponseException("boom"), {"is_valid": "maybe"}, {"confidence": "high"}],
)
async def test_validator_falls_back_on_ai_failure(response) -> None:
    validator = EvidenceValidator(FakeLanguageModel(response), FlowPromptRenderer())
    result = await validator.validate(_movement([{"type": "photo", "quantity_min": 2}]), [_photo("a")], use_ai=True)
    assert result.ai_assessed is False
    assert result.is_valid is False
    assert result.confidence == 0.8
