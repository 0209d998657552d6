"""Admin Trust Flow adjustments

Revision ID: b2e4d6f8a0c3
Revises: a1f3c5e7b9d2
Create Date: 2026-10-18 00:00:00.000000

Creates trust_flow_adjustments: permanent, signed admin bonuses and
penalties that are added to every Trust Flow recompute.
Written manually (not via autogenerate) consistent with project migration policy.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "b2e4d6f8a0c3"
down_revision: Union[str, None] = "a1f3c5e7b9d2"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "trust_flow_adjustments",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey(
                "users.id", name="fk_trust_flow_adjustments_user_id_users", ondelete="CASCADE"
            ),
            nullable=False,
        ),
        sa.Column("points", sa.Float(), nullable=False),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "created_by",
            UUID(as_uuid=True),
            sa.ForeignKey(
                "users.id", name="fk_trust_flow_adjustments_created_by_users", ondelete="SET NULL"
            ),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("kind IN ('bonus', 'penalty')", name="ck_trust_flow_adjustments_kind"),
        sa.CheckConstraint(
            "(kind = 'bonus' AND points > 0) OR (kind = 'penalty' AND points < 0)",
            name="ck_trust_flow_adjustments_points_sign",
        ),
    )
    op.create_index(
        "ix_trust_flow_adjustments_user_created",
        "trust_flow_adjustments",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_trust_flow_adjustments_user_created", table_name="trust_flow_adjustments")
    op.drop_table("trust_flow_adjustments")
