"""UserTrustFlow cache row and TrustFlowChange log.

user_trust_flow holds the last applied Trust Flow per user. A write only
lands when its computed_at is strictly newer than the stored one, so a slow
recompute that started earlier can never clobber a fresher result.

trust_flow_changes is append-only: one row per applied cache write that
changed the value.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


class ColorBand(str, enum.Enum):
    red = "red"
    gray = "gray"
    yellow = "yellow"
    green = "green"
    blue = "blue"

    @property
    def label(self) -> str:
        return _BAND_LABELS[self]


_BAND_LABELS = {
    ColorBand.red: "Low Trust",
    ColorBand.gray: "Newcomer",
    ColorBand.yellow: "Moderate Trust",
    ColorBand.green: "High Trust",
    ColorBand.blue: "Elite",
}


class ChangeReason(str, enum.Enum):
    push_created = "push_created"
    manual_recalc = "manual_recalc"
    lazy_fill = "lazy_fill"
    backfill = "backfill"
    admin_adjustment = "admin_adjustment"


class UserTrustFlow(Base):
    __tablename__ = "user_trust_flow"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    value: Mapped[float] = mapped_column(Float, nullable=False)
    color_band: Mapped[ColorBand] = mapped_column(
        Enum(ColorBand, name="trust_flow_color_band", native_enum=False, length=10),
        nullable=False,
    )
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class TrustFlowChange(Base):
    __tablename__ = "trust_flow_changes"
    __table_args__ = (
        Index("ix_trust_flow_changes_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    old_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    new_value: Mapped[float] = mapped_column(Float, nullable=False)
    change_reason: Mapped[ChangeReason] = mapped_column(
        Enum(ChangeReason, name="trust_flow_change_reason", native_enum=False, length=20),
        nullable=False,
    )
    push_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("trust_pushes.id", ondelete="SET NULL"), nullable=True
    )
    calculated_by: Mapped[str] = mapped_column(String(20), nullable=False, default="api")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
