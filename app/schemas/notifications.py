from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from app.schemas.base import BaseSchema


class NotificationOut(BaseSchema):
    id: int
    kind: str
    title: str
    message: str
    data: Optional[Any] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class MarkNotificationsReadIn(BaseModel):
    notification_ids: List[int] = Field(..., min_length=1)


class MarkedCountOut(BaseModel):
    marked_count: int


class RegisterPushTokenIn(BaseModel):
    expo_push_token: str
    platform: Optional[str] = None
