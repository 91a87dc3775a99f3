"""Poll option model."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from polly.database import Base


class PollOption(Base):
    __tablename__ = "poll_options"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        UniqueConstraint("poll_id", "order_index", name="uq_poll_options_order"),
        CheckConstraint("length(text) > 0 AND length(text) <= 500", name="check_option_text_length"),
        CheckConstraint("order_index >= 0 AND order_index < 100", name="check_valid_order_index"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    poll_id: Mapped[int] = mapped_column(
        ForeignKey("polls.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(String(500), nullable=False)
    # 0-based display position within the poll
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    poll: Mapped["Poll"] = relationship("Poll", back_populates="options")  # noqa: F821
