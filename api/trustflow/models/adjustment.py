"""TrustFlowAdjustment ORM model: a permanent admin bonus or penalty.

Adjustments are signed points added on top of the push contributions every
time a user's Trust Flow is compiled, so they survive recomputes. Rows are
append-only; a correction is a new adjustment in the other direction.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum, Float, ForeignKey, Index, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


class AdjustmentKind(str, enum.Enum):
    bonus = "bonus"
    penalty = "penalty"


class TrustFlowAdjustment(Base):
    __tablename__ = "trust_flow_adjustments"
    __table_args__ = (
        Index("ix_trust_flow_adjustments_user_created", "user_id", "created_at"),
        CheckConstraint(
            "(kind = 'bonus' AND points > 0) OR (kind = 'penalty' AND points < 0)",
            name="ck_trust_flow_adjustments_points_sign",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Signed: positive for a bonus, negative for a penalty
    points: Mapped[float] = mapped_column(Float, nullable=False)
    kind: Mapped[AdjustmentKind] = mapped_column(
        Enum(AdjustmentKind, name="trust_flow_adjustment_kind", native_enum=False, length=10),
        nullable=False,
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
