from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.base import BaseSchema, UserSummary
from app.schemas.enums import ConnectionStatus


class UpdateProfileIn(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    age: Optional[int] = Field(None, ge=18, le=100)
    bio: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    photo_url: Optional[str] = Field(None, pattern=r"^https?://")


class ProfileOut(BaseSchema):
    user_id: str
    name: str
    age: Optional[int] = None
    bio: Optional[str] = None
    city: Optional[str] = None
    photo_url: Optional[str] = None
    last_active: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserDetailOut(BaseModel):
    user: UserSummary
    # between the caller and this user; None when they never connected
    connection_status: Optional[ConnectionStatus] = None
