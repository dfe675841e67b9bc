from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.core.clock import to_naive_utc
from app.core.lifecycle_config import (
    DEFAULT_ROOM_DURATION_MINUTES,
    DEFAULT_ROOM_MAX_PARTICIPANTS,
    ROOM_MAX_PARTICIPANTS,
    ROOM_MIN_PARTICIPANTS,
)
from app.schemas.base import BaseSchema, Pagination
from app.schemas.enums import RoomStatus, RoomType


class _ScheduleMixin(BaseModel):
    @field_validator("scheduled_for", check_fields=False)
    @classmethod
    def _naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


# ---------- requests ----------
class CreateRoomIn(_ScheduleMixin):
    room_name: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=500)
    room_type: RoomType
    tags: List[str] = Field(default_factory=list, max_length=5)
    max_participants: int = Field(DEFAULT_ROOM_MAX_PARTICIPANTS, ge=ROOM_MIN_PARTICIPANTS, le=ROOM_MAX_PARTICIPANTS)
    is_private: bool = False
    scheduled_for: Optional[datetime] = None
    duration: int = Field(DEFAULT_ROOM_DURATION_MINUTES, ge=15, le=180)


class UpdateRoomIn(_ScheduleMixin):
    room_name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=500)
    room_type: Optional[RoomType] = None
    tags: Optional[List[str]] = Field(None, max_length=5)
    max_participants: Optional[int] = Field(None, ge=ROOM_MIN_PARTICIPANTS, le=ROOM_MAX_PARTICIPANTS)
    is_private: Optional[bool] = None
    scheduled_for: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=15, le=180)


# ---------- responses ----------
class RoomOut(BaseSchema):
    id: int
    room_name: str
    description: str
    room_type: RoomType
    tags: List[str] = []
    created_by: str
    participant_ids: List[str]
    max_participants: int
    is_private: bool
    is_active: bool
    scheduled_for: Optional[datetime] = None
    duration: int
    created_at: Optional[datetime] = None


class RoomView(RoomOut):
    status: RoomStatus
    ends_at: Optional[datetime] = None
    participant_count: int
    spots_available: int
    is_participant: bool
    is_creator: bool


class RoomListOut(BaseModel):
    rooms: List[RoomView]
    pagination: Pagination


class MyRoomsOut(BaseModel):
    created_rooms: List[RoomView]
    participating_rooms: List[RoomView]
