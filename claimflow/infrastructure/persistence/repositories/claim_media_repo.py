"""Read-only access to claim photos and audio observations linked to movements."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.application.dtos.flow_engine import AudioObservationResult, ClaimPhotoResult
from claimflow.infrastructure.persistence.models.claim_media import (
    AudioObservation,
    ClaimPhoto,
)


class ClaimMediaRepository:
    """Implements IClaimMediaRepository."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_photos(
        self, tenant_id: str, flow_instance_id: str, movement_key: str
    ) -> list[ClaimPhotoResult]:
        result = await self.db.execute(
            select(ClaimPhoto)
            .where(
                ClaimPhoto.tenant_id == tenant_id,
                ClaimPhoto.flow_instance_id == flow_instance_id,
                ClaimPhoto.movement_key == movement_key,
            )
            .order_by(ClaimPhoto.created_at.asc())
        )
        return [
            ClaimPhotoResult(
                id=p.id,
                claim_id=p.claim_id,
                flow_instance_id=p.flow_instance_id,
                movement_key=p.movement_key,
                storage_url=p.storage_url,
                label=p.label,
                analysis=dict(p.analysis or {}),
                created_at=p.created_at,
            )
            for p in result.scalars().all()
        ]

    async def list_audio(
        self, tenant_id: str, flow_instance_id: str, movement_key: str
    ) -> list[AudioObservationResult]:
        result = await self.db.execute(
            select(AudioObservation)
            .where(
                AudioObservation.tenant_id == tenant_id,
                AudioObservation.flow_instance_id == flow_instance_id,
                AudioObservation.movement_key == movement_key,
            )
            .order_by(AudioObservation.created_at.asc())
        )
        return [
            AudioObservationResult(
                id=a.id,
                claim_id=a.claim_id,
                flow_instance_id=a.flow_instance_id,
                movement_key=a.movement_key,
                audio_url=a.audio_url,
                transcription=a.transcription,
                created_at=a.created_at,
            )
            for a in result.scalars().all()
        ]
