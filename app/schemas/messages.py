from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.schemas.base import BaseSchema, UserSummary
from app.schemas.enums import MediaType


class SendMessageIn(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    media_url: Optional[str] = Field(None, pattern=r"^https?://")
    media_type: Optional[MediaType] = None

    @model_validator(mode="after")
    def media_type_needs_url(self):
        if self.media_type and not self.media_url:
            raise ValueError("media_type requires media_url")
        return self


class MarkAsReadIn(BaseModel):
    message_ids: List[int] = Field(..., min_length=1)


class MarkedCountOut(BaseModel):
    marked_count: int


class MessageOut(BaseSchema):
    id: int
    connection_id: int
    sender_id: str
    receiver_id: str
    content: str
    is_media: bool
    media_url: Optional[str] = None
    media_type: Optional[MediaType] = None
    timestamp: datetime
    is_read: bool
    read_at: Optional[datetime] = None


class MessageListOut(BaseModel):
    messages: List[MessageOut]
    unread_count: int
    total: int
    has_more: bool
    chat_expires_at: Optional[datetime] = None
    time_left: Optional[int] = None
    time_left_formatted: str


class LastMessage(BaseModel):
    content: str
    timestamp: datetime
    is_from_me: bool


class ChatSummaryItem(BaseModel):
    connection_id: int
    other_user: UserSummary
    unread_count: int
    last_message: Optional[LastMessage] = None
    chat_expires_at: Optional[datetime] = None
    time_left: Optional[int] = None
    time_left_formatted: str


class ChatSummaryOut(BaseModel):
    chats: List[ChatSummaryItem]
    total_unread: int
