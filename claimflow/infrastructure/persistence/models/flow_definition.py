"""FlowDefinition ORM model. One row per (flow_key, version)."""

from typing import Any

import sqlalchemy as sa
from sqlalchemy import Boolean, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from claimflow.infrastructure.persistence.database import Base
from claimflow.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin


class FlowDefinition(CuidMixin, TimestampMixin, Base):
    """Versioned inspection template. Table: flow_definition.

    tenant_id is NULL for system definitions, which every tenant can see.
    """

    __tablename__ = "flow_definition"

    tenant_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    flow_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    perils: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=sa.text("'[]'::jsonb")
    )
    property_types: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=sa.text("'[]'::jsonb")
    )
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=sa.text("1")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    is_system: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.text("false")
    )
    flow_json: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "flow_key", "version", name="uq_flow_definition_tenant_key_version"
        ),
        Index("ix_flow_definition_active", "is_active", "tenant_id"),
    )
