"""initial flow engine schema

Revision ID: a1f0c2d3e4b5
Revises:
Create Date: 2026-10-19

Flow definitions, flow instances (optimistic version column), movement
completions, evidence links, gate evaluations, and the claim media tables
used as evidence sources.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "a1f0c2d3e4b5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def _jsonb(name: str, default: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB(astext_type=sa.Text()),
        server_default=sa.text(f"'{default}'::jsonb"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "flow_definition",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("flow_key", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _jsonb("perils", "[]"),
        _jsonb("property_types", "[]"),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("is_system", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("flow_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tenant_id", "flow_key", "version", name="uq_flow_definition_tenant_key_version"
        ),
    )
    op.create_index("ix_flow_definition_tenant_id", "flow_definition", ["tenant_id"])
    op.create_index("ix_flow_definition_flow_key", "flow_definition", ["flow_key"])
    op.create_index("ix_flow_definition_active", "flow_definition", ["is_active", "tenant_id"])

    op.create_table(
        "flow_instance",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("claim_id", sa.String(), nullable=False),
        sa.Column("flow_definition_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column(
            "current_phase_index", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("current_phase_id", sa.String(length=100), nullable=True),
        sa.Column("current_movement_key", sa.String(length=250), nullable=True),
        _jsonb("completed_movement_keys", "[]"),
        _jsonb("dynamic_movements", "[]"),
        _jsonb("context", "{}"),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["flow_definition_id"], ["flow_definition.id"], ondelete="RESTRICT"
        ),
        sa.CheckConstraint(
            "status IN ('active', 'paused', 'completed', 'cancelled')",
            name="flow_instance_status_check",
        ),
    )
    op.create_index("ix_flow_instance_tenant_id", "flow_instance", ["tenant_id"])
    op.create_index("ix_flow_instance_claim_id", "flow_instance", ["claim_id"])
    op.create_index(
        "ix_flow_instance_flow_definition_id", "flow_instance", ["flow_definition_id"]
    )
    op.create_index("ix_flow_instance_tenant_claim", "flow_instance", ["tenant_id", "claim_id"])

    op.create_table(
        "movement_completion",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("flow_instance_id", sa.String(), nullable=False),
        sa.Column("claim_id", sa.String(), nullable=False),
        sa.Column("movement_key", sa.String(length=250), nullable=False),
        sa.Column("phase_id", sa.String(length=100), nullable=False),
        sa.Column("movement_id", sa.String(length=150), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column(
            "skipped_required", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("completed_by", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _jsonb("evidence_data", "{}"),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["flow_instance_id"], ["flow_instance.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "status IN ('completed', 'skipped')", name="movement_completion_status_check"
        ),
    )
    op.create_index("ix_movement_completion_tenant_id", "movement_completion", ["tenant_id"])
    op.create_index(
        "ix_movement_completion_flow_instance_id", "movement_completion", ["flow_instance_id"]
    )
    op.create_index("ix_movement_completion_claim_id", "movement_completion", ["claim_id"])
    op.create_index(
        "ix_movement_completion_instance_key",
        "movement_completion",
        ["flow_instance_id", "movement_key"],
    )

    op.create_table(
        "movement_evidence",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("flow_instance_id", sa.String(), nullable=False),
        sa.Column("movement_key", sa.String(length=250), nullable=False),
        sa.Column("evidence_type", sa.String(length=30), nullable=False),
        sa.Column("reference_id", sa.String(), nullable=True),
        _jsonb("evidence_data", "{}"),
        sa.Column("created_by", sa.String(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["flow_instance_id"], ["flow_instance.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_movement_evidence_tenant_id", "movement_evidence", ["tenant_id"])
    op.create_index(
        "ix_movement_evidence_flow_instance_id", "movement_evidence", ["flow_instance_id"]
    )
    op.create_index(
        "ix_movement_evidence_instance_key",
        "movement_evidence",
        ["flow_instance_id", "movement_key"],
    )

    op.create_table(
        "gate_evaluation",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("flow_instance_id", sa.String(), nullable=False),
        sa.Column("gate_id", sa.String(length=100), nullable=False),
        sa.Column("result", sa.String(length=20), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("evaluation_type", sa.String(length=20), nullable=False),
        _jsonb("details", "{}"),
        sa.Column(
            "evaluated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["flow_instance_id"], ["flow_instance.id"], ondelete="CASCADE"),
        sa.CheckConstraint("result IN ('passed', 'failed')", name="gate_evaluation_result_check"),
    )
    op.create_index("ix_gate_evaluation_tenant_id", "gate_evaluation", ["tenant_id"])
    op.create_index(
        "ix_gate_evaluation_flow_instance_id", "gate_evaluation", ["flow_instance_id"]
    )

    op.create_table(
        "claim_photos",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("claim_id", sa.String(), nullable=False),
        sa.Column("flow_instance_id", sa.String(), nullable=True),
        sa.Column("movement_key", sa.String(length=250), nullable=True),
        sa.Column("storage_url", sa.Text(), nullable=True),
        sa.Column("label", sa.String(length=200), nullable=True),
        _jsonb("analysis", "{}"),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_claim_photos_tenant_id", "claim_photos", ["tenant_id"])
    op.create_index("ix_claim_photos_claim_id", "claim_photos", ["claim_id"])
    op.create_index(
        "ix_claim_photos_flow_movement", "claim_photos", ["flow_instance_id", "movement_key"]
    )

    op.create_table(
        "audio_observations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("claim_id", sa.String(), nullable=False),
        sa.Column("flow_instance_id", sa.String(), nullable=True),
        sa.Column("movement_key", sa.String(length=250), nullable=True),
        sa.Column("audio_url", sa.Text(), nullable=True),
        sa.Column("transcription", sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audio_observations_tenant_id", "audio_observations", ["tenant_id"])
    op.create_index("ix_audio_observations_claim_id", "audio_observations", ["claim_id"])
    op.create_index(
        "ix_audio_observations_flow_movement",
        "audio_observations",
        ["flow_instance_id", "movement_key"],
    )


def downgrade() -> None:
    op.drop_table("audio_observations")
    op.drop_table("claim_photos")
    op.drop_table("gate_evaluation")
    op.drop_table("movement_evidence")
    op.drop_table("movement_completion")
    op.drop_table("flow_instance")
    op.drop_table("flow_definition")
