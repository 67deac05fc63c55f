"""Create artifacts, proofs and audit_log tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-16

One proof per (campaign, wallet) is enforced by uq_proofs_campaign_user.
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create artifacts table
    op.create_table(
        "artifacts",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("owner_address", sa.String(length=42), nullable=False),
        sa.Column(
            "state",
            sa.Enum(
                "draft", "generated", "finalized", "shared",
                name="artifact_state",
            ),
            nullable=False,
        ),
        sa.Column("campaign_type", sa.String(length=100), nullable=False),
        sa.Column("image_style", sa.String(length=100), nullable=False),
        # Content (frozen once finalized)
        sa.Column("caption", sa.Text, nullable=False),
        sa.Column("caption_hash", sa.String(length=64), nullable=False),
        sa.Column("image_ref", sa.String(length=2000), nullable=True),
        sa.Column("artifact_hash", sa.String(length=64), nullable=True),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_artifacts_owner_address", "artifacts", ["owner_address"])
    op.create_index("ix_artifacts_state", "artifacts", ["state"])
    op.create_index("ix_artifacts_owner_state", "artifacts", ["owner_address", "state"])

    # Create proofs table
    op.create_table(
        "proofs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "campaign_id",
            sa.String(length=64),
            sa.ForeignKey("artifacts.id"),
            nullable=False,
        ),
        sa.Column("user_address", sa.String(length=42), nullable=False),
        sa.Column("campaign_hash", sa.String(length=66), nullable=False),
        sa.Column("intent_fingerprint", sa.String(length=66), nullable=False),
        sa.Column("intent_category", sa.Integer, nullable=False),
        sa.Column("target_dapps", sa.JSON, nullable=False),
        sa.Column("action_order", sa.JSON, nullable=False),
        sa.Column("tx_hash", sa.String(length=128), nullable=True),
        sa.Column(
            "recorded_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "campaign_id", "user_address", name="uq_proofs_campaign_user"
        ),
    )
    op.create_index("ix_proofs_campaign_id", "proofs", ["campaign_id"])
    op.create_index("ix_proofs_user_address", "proofs", ["user_address"])
    op.create_index("ix_proofs_recorded_at", "proofs", ["recorded_at"])

    # Create audit_log table
    op.create_table(
        "audit_log",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "ts",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "actor_kind",
            sa.Enum("wallet", "system", name="audit_actor_kind"),
            nullable=False,
        ),
        sa.Column("actor_id", sa.String(length=128), nullable=False),
        sa.Column(
            "action",
            sa.Enum("created", "updated", "status_changed", name="audit_action"),
            nullable=False,
        ),
        sa.Column("entity_kind", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=False),
        sa.Column("before", sa.JSON, nullable=True),
        sa.Column("after", sa.JSON, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
    )
    op.create_index("ix_audit_log_ts", "audit_log", ["ts"])
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_entity_kind", "audit_log", ["entity_kind"])
    op.create_index("ix_audit_log_entity_id", "audit_log", ["entity_id"])
    op.create_index("ix_audit_log_entity", "audit_log", ["entity_kind", "entity_id"])
    op.create_index(
        "ix_audit_log_entity_ts", "audit_log", ["entity_kind", "entity_id", "ts"]
    )


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("proofs")
    op.drop_table("artifacts")

    # Drop enum types (PostgreSQL only)
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        sa.Enum(name="audit_action").drop(bind, checkfirst=True)
        sa.Enum(name="audit_actor_kind").drop(bind, checkfirst=True)
        sa.Enum(name="artifact_state").drop(bind, checkfirst=True)
