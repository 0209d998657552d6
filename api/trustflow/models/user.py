import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .push import TrustPush


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    api_key_hash: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # lazy="raise" keeps async code from loading these implicitly
    pushes_sent: Mapped[list["TrustPush"]] = relationship(
        "TrustPush",
        foreign_keys="TrustPush.from_user_id",
        back_populates="sender",
        lazy="raise",
    )
    pushes_received: Mapped[list["TrustPush"]] = relationship(
        "TrustPush",
        foreign_keys="TrustPush.to_user_id",
        back_populates="target",
        lazy="raise",
    )
