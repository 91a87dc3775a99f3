"""Vote model: one row per ballot for one option."""

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from polly.database import Base


class Vote(Base):
    __tablename__ = "votes"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint(
            "voter_id IS NOT NULL OR voter_ip IS NOT NULL", name="check_voter_identification"
        ),
        Index("idx_votes_poll_option", "poll_id", "option_id"),
        Index("idx_votes_poll_voter", "poll_id", "voter_id"),
        Index("idx_votes_poll_ip", "poll_id", "voter_ip"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    poll_id: Mapped[int] = mapped_column(
        ForeignKey("polls.id", ondelete="CASCADE"), nullable=False
    )
    option_id: Mapped[int] = mapped_column(
        ForeignKey("poll_options.id", ondelete="CASCADE"), nullable=False
    )
    voter_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    # IPv6 text form is at most 45 chars
    voter_ip: Mapped[Optional[str]] = mapped_column(String(45))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
