"""Trust Flow schema

Revision ID: a1f3c5e7b9d2
Revises:
Create Date: 2026-09-28 00:00:00.000000

Creates users, trust_pushes (append-only ledger), push_contributions
(insert-once scoring archive), user_trust_flow (cache) and
trust_flow_changes (cache write log).
Written manually (not via autogenerate) consistent with project migration policy.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1f3c5e7b9d2"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("api_key_hash", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("api_key_hash", name="uq_users_api_key_hash"),
    )

    op.create_table(
        "trust_pushes",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column(
            "from_user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_trust_pushes_from_user_id_users", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "to_user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_trust_pushes_to_user_id_users", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("context_type", sa.String(20), nullable=True),
        sa.Column("context_id", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("from_user_id <> to_user_id", name="ck_trust_pushes_no_self_push"),
        sa.CheckConstraint("kind IN ('positive', 'negative')", name="ck_trust_pushes_kind"),
        sa.CheckConstraint(
            "context_type IS NULL OR context_type IN ('post', 'comment', 'profile')",
            name="ck_trust_pushes_context_type",
        ),
    )

    # Scoring reads a target's pushes in (created_at, id) order; admission
    # counts a sender's pushes per target and overall within a window.
    op.create_index(
        "ix_trust_pushes_to_user_created",
        "trust_pushes",
        ["to_user_id", "created_at", "id"],
    )
    op.create_index(
        "ix_trust_pushes_from_to_created",
        "trust_pushes",
        ["from_user_id", "to_user_id", "created_at"],
    )
    op.create_index(
        "ix_trust_pushes_from_created",
        "trust_pushes",
        ["from_user_id", "created_at"],
    )

    op.create_table(
        "push_contributions",
        sa.Column(
            "push_id",
            sa.BigInteger(),
            sa.ForeignKey(
                "trust_pushes.id", name="fk_push_contributions_push_id_trust_pushes", ondelete="CASCADE"
            ),
            primary_key=True,
        ),
        sa.Column("pusher_value", sa.Float(), nullable=False),
        sa.Column("base_weight", sa.Float(), nullable=False),
        sa.Column("repeat_count", sa.Integer(), nullable=False),
        sa.Column("effective_weight", sa.Float(), nullable=False),
        sa.Column("contribution", sa.Float(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "user_trust_flow",
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_user_trust_flow_user_id_users", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("color_band", sa.String(10), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "trust_flow_changes",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_trust_flow_changes_user_id_users", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("old_value", sa.Float(), nullable=True),
        sa.Column("new_value", sa.Float(), nullable=False),
        sa.Column("change_reason", sa.String(20), nullable=False),
        sa.Column(
            "push_id",
            sa.BigInteger(),
            sa.ForeignKey(
                "trust_pushes.id", name="fk_trust_flow_changes_push_id_trust_pushes", ondelete="SET NULL"
            ),
            nullable=True,
        ),
        sa.Column("calculated_by", sa.String(20), nullable=False, server_default="api"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_trust_flow_changes_user_created",
        "trust_flow_changes",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_trust_flow_changes_user_created", table_name="trust_flow_changes")
    op.drop_table("trust_flow_changes")
    op.drop_table("user_trust_flow")
    op.drop_table("push_contributions")
    op.drop_index("ix_trust_pushes_from_created", table_name="trust_pushes")
    op.drop_index("ix_trust_pushes_from_to_created", table_name="trust_pushes")
    op.drop_index("ix_trust_pushes_to_user_created", table_name="trust_pushes")
    op.drop_table("trust_pushes")
    op.drop_table("users")
