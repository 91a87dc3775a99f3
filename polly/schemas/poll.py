"""Poll Pydantic schemas: form payloads in, poll representations out."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from polly.config import settings
from polly.models.poll import MAX_OPTIONS, MIN_OPTIONS, as_utc

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
OPTION_MAX_LENGTH = 500


def _clean_title(value):
    title = (value or "").strip()
    if not title:
        raise ValueError("Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValueError(f"Title must be {TITLE_MAX_LENGTH} characters or less")
    return title


def _clean_description(value):
    description = (value or "").strip()
    if not description:
        return None
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"Description must be {DESCRIPTION_MAX_LENGTH} characters or less")
    return description


def _clean_options(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    options = []
    for raw in value:
        text = (raw or "").strip()
        if not text:
            raise ValueError("Option cannot be empty")
        if len(text) > OPTION_MAX_LENGTH:
            raise ValueError(f"Option must be {OPTION_MAX_LENGTH} characters or less")
        options.append(text)
    if len(options) < MIN_OPTIONS:
        raise ValueError(f"At least {MIN_OPTIONS} options are required")
    if len(options) > MAX_OPTIONS:
        raise ValueError(f"Maximum {MAX_OPTIONS} options allowed")
    return options


def _clean_expiry(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if value <= datetime.now(timezone.utc):
        raise ValueError("Expiry date must be in the future")
    return value.astimezone(timezone.utc)


class PollCreate(BaseModel):
    """Fields submitted on the create-poll form."""
    title: str
    description: Optional[str] = None
    options: List[str]
    allow_multiple_votes: bool = False
    is_anonymous: bool = False
    expires_at: Optional[datetime] = None

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, value):
        return _clean_title(value)

    @field_validator("description", mode="before")
    @classmethod
    def check_description(cls, value):
        return _clean_description(value)

    @field_validator("options", mode="before")
    @classmethod
    def check_options(cls, value):
        return _clean_options(value)

    @field_validator("expires_at", mode="before")
    @classmethod
    def blank_expiry(cls, value):
        return value or None

    @field_validator("expires_at")
    @classmethod
    def future_expiry(cls, value):
        return _clean_expiry(value)


class PollUpdate(BaseModel):
    """
    Fields submitted on the edit-poll form. Only fields present in the
    payload are applied; an empty description or expiry clears it.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    options: Optional[List[str]] = None
    allow_multiple_votes: Optional[bool] = None
    is_anonymous: Optional[bool] = None
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, value):
        return _clean_title(value)

    @field_validator("description", mode="before")
    @classmethod
    def check_description(cls, value):
        return _clean_description(value)

    @field_validator("options", mode="before")
    @classmethod
    def check_options(cls, value):
        return _clean_options(value)

    @field_validator("expires_at", mode="before")
    @classmethod
    def blank_expiry(cls, value):
        return value or None

    @field_validator("expires_at")
    @classmethod
    def future_expiry(cls, value):
        return _clean_expiry(value)

    def poll_fields(self) -> dict:
        """Column values to write on the poll row."""
        return {name: getattr(self, name) for name in self.model_fields_set if name != "options"}


class PollOptionOut(BaseModel):
    id: int
    poll_id: int
    text: str
    order_index: int
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OptionResult(PollOptionOut):
    vote_count: int = 0
    percentage: float = 0.0


class PollOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    creator_id: int
    share_token: str
    is_active: bool
    allow_multiple_votes: bool
    is_anonymous: bool
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("expires_at", "created_at", "updated_at")
    @classmethod
    def utc(cls, value):
        return as_utc(value)


class PollWithOptions(PollOut):
    options: List[PollOptionOut] = Field(default_factory=list)
    share_url: Optional[str] = None

    @classmethod
    def from_poll(cls, poll) -> "PollWithOptions":
        """Serialize a poll whose options are already loaded."""
        out = cls.model_validate(poll)
        out.share_url = settings.share_url(poll.share_token)
        return out


class PollWithResults(PollOut):
    options: List[OptionResult] = Field(default_factory=list)
    total_votes: int = 0
    status: str
    can_vote: bool
    share_url: Optional[str] = None


class UserPollSummary(BaseModel):
    """Row shown on the creator's dashboard."""
    id: int
    title: str
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool
    share_token: str
    total_votes: int = 0


class PollStats(BaseModel):
    poll: PollOut
    total_votes: int
    votes_over_time: List[datetime] = Field(default_factory=list)
