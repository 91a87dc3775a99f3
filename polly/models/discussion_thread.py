"""Discussion thread model: threaded comments attached to a poll."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from polly.database import Base

MAX_CONTENT_LENGTH = 2000


class DiscussionThread(Base):
    """
    A comment on a poll. ``parent_id`` points at the comment being replied
    to; top-level comments have none. Deleting flips ``is_deleted`` so the
    rows below stay addressable.
    """
    __tablename__ = "discussion_threads"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint(
            f"length(content) > 0 AND length(content) <= {MAX_CONTENT_LENGTH}",
            name="discussion_threads_content_length",
        ),
        CheckConstraint("parent_id IS NULL OR id != parent_id", name="discussion_threads_no_self_parent"),
        Index("idx_discussion_threads_poll_created", "poll_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    poll_id: Mapped[int] = mapped_column(
        ForeignKey("polls.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("discussion_threads.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
