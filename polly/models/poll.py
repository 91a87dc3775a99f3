"""Poll model: a question with 2–20 ordered options, shared by token."""

import enum
import secrets
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from polly.database import Base

MIN_OPTIONS = 2
MAX_OPTIONS = 20


class PollStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CLOSED = "closed"


def generate_share_token() -> str:
    """URL-safe token built from 16 random bytes."""
    return secrets.token_urlsafe(16)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands timestamps back naive; they are always stored as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Poll(Base):
    __tablename__ = "polls"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint("length(title) > 0 AND length(title) <= 200", name="check_title_length"),
        CheckConstraint("description IS NULL OR length(description) <= 1000", name="check_description_length"),
        CheckConstraint("expires_at IS NULL OR expires_at > created_at", name="check_expires_at_future"),
        Index("idx_polls_creator_created", "creator_id", "created_at"),
        Index("idx_polls_active_created", "is_active", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    creator_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    share_token: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False, default=generate_share_token
    )

    # ── Settings ──
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allow_multiple_votes: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Anonymous polls never record who voted, only the voter's IP
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # ── Relationships ──
    options: Mapped[List["PollOption"]] = relationship(  # noqa: F821
        "PollOption",
        back_populates="poll",
        order_by="PollOption.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return as_utc(self.expires_at) <= now

    def status(self, now: Optional[datetime] = None) -> PollStatus:
        if not self.is_active:
            return PollStatus.CLOSED
        if self.is_expired(now):
            return PollStatus.EXPIRED
        return PollStatus.ACTIVE

    def can_accept_votes(self, now: Optional[datetime] = None) -> bool:
        return self.status(now) is PollStatus.ACTIVE
