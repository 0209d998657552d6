"""TrustPush ORM model: one directed, immutable feedback event.

Rows are appended by the ledger and never updated or deleted by normal
operation. Ordering for scoring is (created_at, id); the big-integer id is
the tie-breaker when timestamps collide.
"""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK

if TYPE_CHECKING:
    from .contribution import PushContribution
    from .user import User

NO_SELF_PUSH_CONSTRAINT = "ck_trust_pushes_no_self_push"


class PushKind(str, enum.Enum):
    positive = "positive"
    negative = "negative"


class ContextType(str, enum.Enum):
    post = "post"
    comment = "comment"
    profile = "profile"


class TrustPush(Base):
    __tablename__ = "trust_pushes"
    __table_args__ = (
        CheckConstraint("from_user_id <> to_user_id", name=NO_SELF_PUSH_CONSTRAINT),
        Index("ix_trust_pushes_to_user_created", "to_user_id", "created_at", "id"),
        Index("ix_trust_pushes_from_to_created", "from_user_id", "to_user_id", "created_at"),
        Index("ix_trust_pushes_from_created", "from_user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    from_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    to_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[PushKind] = mapped_column(
        Enum(PushKind, name="push_kind", native_enum=False, length=10), nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    context_type: Mapped[Optional[ContextType]] = mapped_column(
        Enum(ContextType, name="push_context_type", native_enum=False, length=20),
        nullable=True,
    )
    context_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    sender: Mapped["User"] = relationship(
        "User", foreign_keys=[from_user_id], back_populates="pushes_sent", lazy="raise"
    )
    target: Mapped["User"] = relationship(
        "User", foreign_keys=[to_user_id], back_populates="pushes_received", lazy="raise"
    )
    contribution_record: Mapped[Optional["PushContribution"]] = relationship(
        "PushContribution", back_populates="push", uselist=False, lazy="raise"
    )
