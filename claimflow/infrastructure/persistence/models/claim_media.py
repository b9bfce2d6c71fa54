"""Claim media read models used as movement evidence sources.

Only the columns the evidence aggregator reads are mapped; the tables are
owned by the claims platform.
"""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from claimflow.infrastructure.persistence.database import Base
from claimflow.infrastructure.persistence.models.mixins import CuidMixin, TenantMixin


class ClaimPhoto(CuidMixin, TenantMixin, Base):
    """Table: claim_photos."""

    __tablename__ = "claim_photos"

    claim_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    flow_instance_id: Mapped[str | None] = mapped_column(String, nullable=True)
    movement_key: Mapped[str | None] = mapped_column(String(250), nullable=True)
    storage_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    label: Mapped[str | None] = mapped_column(String(200), nullable=True)
    analysis: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=sa.text("'{}'::jsonb")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_claim_photos_flow_movement", "flow_instance_id", "movement_key"),
    )


class AudioObservation(CuidMixin, TenantMixin, Base):
    """Table: audio_observations."""

    __tablename__ = "audio_observations"

    claim_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    flow_instance_id: Mapped[str | None] = mapped_column(String, nullable=True)
    movement_key: Mapped[str | None] = mapped_column(String(250), nullable=True)
    audio_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcription: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_audio_observations_flow_movement", "flow_instance_id", "movement_key"),
    )
