from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas.base import BaseSchema, Pagination, UserSummary
from app.schemas.enums import ConnectionDecision, ConnectionStatus


# ---------- requests ----------
class ConnectionRequestIn(BaseModel):
    receiver_id: str = Field(..., min_length=1)
    message: str = Field("", max_length=300)


class ConnectionStatusUpdateIn(BaseModel):
    status: ConnectionDecision


# ---------- responses ----------
class ConnectionOut(BaseSchema):
    id: int
    requester_id: str
    receiver_id: str
    status: ConnectionStatus
    message: str = ""
    requested_at: datetime
    request_expires_at: datetime
    chat_expires_at: Optional[datetime] = None


class ConnectionView(BaseModel):
    id: int
    other_user: UserSummary
    status: ConnectionStatus
    message: str = ""
    requested_at: datetime
    request_expires_at: datetime
    chat_expires_at: Optional[datetime] = None
    is_requester: bool
    is_chat_open: bool
    # seconds; None until a chat window exists
    time_left: Optional[int] = None


class ConnectionListOut(BaseModel):
    connections: List[ConnectionView]
    pagination: Pagination


class ActiveChat(BaseModel):
    connection_id: int
    other_user: UserSummary
    chat_expires_at: datetime
    time_left: int
    time_left_formatted: str


class ActiveChatsOut(BaseModel):
    active_chats: List[ActiveChat]
    count: int
