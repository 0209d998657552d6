"""PushContribution ORM model: the frozen scoring breakdown of one push.

Keyed by push_id, written at most once (INSERT ... ON CONFLICT DO NOTHING)
the first time the push takes part in a recompute, and never updated. Every
later recompute replays the stored contribution instead of re-deriving it,
so a pusher's reputation moving between tiers does not rewrite history.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Integer, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK

if TYPE_CHECKING:
    from .push import TrustPush


class PushContribution(Base):
    __tablename__ = "push_contributions"

    push_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("trust_pushes.id", ondelete="CASCADE"), primary_key=True
    )
    pusher_value: Mapped[float] = mapped_column(Float, nullable=False)
    base_weight: Mapped[float] = mapped_column(Float, nullable=False)
    repeat_count: Mapped[int] = mapped_column(Integer, nullable=False)
    effective_weight: Mapped[float] = mapped_column(Float, nullable=False)
    contribution: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    push: Mapped["TrustPush"] = relationship(
        "TrustPush", back_populates="contribution_record", lazy="raise"
    )
