"""User Pydantic schemas: profile output."""

from typing import Optional

from pydantic import BaseModel, EmailStr


class UserOut(BaseModel):
    """Public user representation returned by the API."""
    id: int
    email: EmailStr
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}
