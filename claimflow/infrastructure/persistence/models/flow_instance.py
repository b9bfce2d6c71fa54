"""Flow instance ORM models: instance state and its append-only audit tables."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from claimflow.domain.enums import CompletionStatus, FlowInstanceStatus, GateResult
from claimflow.infrastructure.persistence.database import Base
from claimflow.infrastructure.persistence.models.mixins import (
    CuidMixin,
    MultiTenantModel,
    TenantMixin,
    VersionedMixin,
)
from claimflow.shared.utils.datetime import utc_now


def _in_values(column: str, values: list[str]) -> str:
    return "{} IN ({})".format(
        column, ", ".join("'{}'".format(v.replace("'", "''")) for v in values)
    )


class FlowInstance(MultiTenantModel, VersionedMixin, Base):
    """Per-claim run of a flow definition. Table: flow_instance."""

    __tablename__ = "flow_instance"

    claim_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    flow_definition_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("flow_definition.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=FlowInstanceStatus.ACTIVE.value
    )
    current_phase_index: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    current_phase_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    current_movement_key: Mapped[str | None] = mapped_column(String(250), nullable=True)
    completed_movement_keys: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=sa.text("'[]'::jsonb")
    )
    dynamic_movements: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=sa.text("'[]'::jsonb")
    )
    context: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=sa.text("'{}'::jsonb")
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_flow_instance_tenant_claim", "tenant_id", "claim_id"),
        CheckConstraint(
            _in_values("status", FlowInstanceStatus.values()),
            name="flow_instance_status_check",
        ),
    )


class MovementCompletion(CuidMixin, TenantMixin, Base):
    """Append-only completion/skip log. Table: movement_completion."""

    __tablename__ = "movement_completion"

    flow_instance_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("flow_instance.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    claim_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    movement_key: Mapped[str] = mapped_column(String(250), nullable=False)
    phase_id: Mapped[str] = mapped_column(String(100), nullable=False)
    movement_id: Mapped[str] = mapped_column(String(150), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    skipped_required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.text("false")
    )
    completed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence_data: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=sa.text("'{}'::jsonb")
    )
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_movement_completion_instance_key", "flow_instance_id", "movement_key"),
        CheckConstraint(
            _in_values("status", CompletionStatus.values()),
            name="movement_completion_status_check",
        ),
    )


class MovementEvidence(CuidMixin, TenantMixin, Base):
    """Direct evidence link for a movement. Table: movement_evidence."""

    __tablename__ = "movement_evidence"

    flow_instance_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("flow_instance.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    movement_key: Mapped[str] = mapped_column(String(250), nullable=False)
    evidence_type: Mapped[str] = mapped_column(String(30), nullable=False)
    reference_id: Mapped[str | None] = mapped_column(String, nullable=True)
    evidence_data: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=sa.text("'{}'::jsonb")
    )
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_movement_evidence_instance_key", "flow_instance_id", "movement_key"),
    )


class GateEvaluation(CuidMixin, TenantMixin, Base):
    """Gate evaluation audit row. Table: gate_evaluation."""

    __tablename__ = "gate_evaluation"

    flow_instance_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("flow_instance.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    gate_id: Mapped[str] = mapped_column(String(100), nullable=False)
    result: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    evaluation_type: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=sa.text("'{}'::jsonb")
    )
    evaluated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            _in_values("result", GateResult.values()),
            name="gate_evaluation_result_check",
        ),
    )
