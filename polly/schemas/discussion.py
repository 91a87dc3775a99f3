"""Discussion thread Pydantic schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from polly.models.discussion_thread import MAX_CONTENT_LENGTH
from polly.models.poll import as_utc


def _clean_content(value):
    content = (value or "").strip()
    if not content:
        raise ValueError("Comment content is required")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValueError(f"Comment content must be {MAX_CONTENT_LENGTH} characters or less")
    return content


class DiscussionThreadCreate(BaseModel):
    content: str
    parent_id: Optional[int] = Field(None, gt=0)

    @field_validator("content", mode="before")
    @classmethod
    def check_content(cls, value):
        return _clean_content(value)

    @field_validator("parent_id", mode="before")
    @classmethod
    def blank_parent(cls, value):
        return value or None


class DiscussionThreadUpdate(BaseModel):
    content: Optional[str] = None
    is_deleted: Optional[bool] = None

    @field_validator("content", mode="before")
    @classmethod
    def check_content(cls, value):
        return _clean_content(value)


class DiscussionThreadOut(BaseModel):
    id: int
    poll_id: int
    parent_id: Optional[int] = None
    user_id: int
    content: str
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at")
    @classmethod
    def utc(cls, value):
        return as_utc(value)


class DiscussionThreadWithUser(DiscussionThreadOut):
    """A visible comment joined to its author's display metadata."""
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_avatar_url: Optional[str] = None


class DiscussionThreadNode(DiscussionThreadWithUser):
    replies: List["DiscussionThreadNode"] = Field(default_factory=list)
    reply_count: int = 0
