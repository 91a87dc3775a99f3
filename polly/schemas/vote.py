"""Vote Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from polly.models.poll import as_utc


class VoteCreate(BaseModel):
    """Fields submitted on the vote form."""
    poll_id: int = Field(..., gt=0)
    option_id: int = Field(..., gt=0)


class VoteOut(BaseModel):
    id: int
    poll_id: int
    option_id: int
    voter_id: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("created_at")
    @classmethod
    def utc(cls, value):
        return as_utc(value)


class UniqueVoters(BaseModel):
    user_voters: int = 0
    anonymous_voters: int = 0
