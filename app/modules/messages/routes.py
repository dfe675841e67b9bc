from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.auth import get_current_user_id
from app.core.clock import Clock, get_clock
from app.core.db import get_db
from app.modules.notifications.emitter import Notifier, get_notifier
from app.schemas.messages import (
    ChatSummaryItem,
    ChatSummaryOut,
    LastMessage,
    MarkAsReadIn,
    MarkedCountOut,
    MessageListOut,
    MessageOut,
    SendMessageIn,
)
from app.services.user_summaries import load_summaries, summary_for
from app.modules.connections.windows import format_time_left
from .service import post_message, mark_read, delete_message, list_messages, chat_summary

router = APIRouter(prefix="/messages", tags=["messages"])


def _seconds(delta) -> Optional[int]:
    return int(delta.total_seconds()) if delta is not None else None


@router.get("/summary", response_model=ChatSummaryOut)
def message_chat_summary(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    page = chat_summary(db, user_id, clock=clock)
    summaries = load_summaries(db, [c.connection.other_endpoint(user_id) for c in page.chats])

    items = []
    for chat in page.chats:
        last = chat.last_message
        items.append(
            ChatSummaryItem(
                connection_id=chat.connection.id,
                other_user=summary_for(summaries, chat.connection.other_endpoint(user_id)),
                unread_count=chat.unread_count,
                last_message=LastMessage(
                    content=last.content,
                    timestamp=last.timestamp,
                    is_from_me=last.sender_id == user_id,
                ) if last else None,
                chat_expires_at=chat.connection.chat_expires_at,
                time_left=_seconds(chat.time_left),
                time_left_formatted=format_time_left(chat.time_left),
            )
        )
    return ChatSummaryOut(chats=items, total_unread=page.total_unread)


@router.post("/{connection_id}", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def message_send(
    connection_id: int,
    payload: SendMessageIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
):
    return post_message(
        db,
        connection_id,
        user_id,
        payload.content,
        media_url=payload.media_url,
        media_type=payload.media_type.value if payload.media_type else None,
        clock=clock,
        notifier=notifier,
    )


@router.get("/{connection_id}", response_model=MessageListOut)
def message_list(
    connection_id: int,
    before: Optional[int] = None,
    after: Optional[int] = None,
    limit: int = Query(50, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    page = list_messages(db, connection_id, user_id, before=before, after=after, limit=limit, clock=clock)
    return MessageListOut(
        messages=[MessageOut.model_validate(m) for m in page.messages],
        unread_count=page.unread_count,
        total=page.total,
        has_more=page.has_more,
        chat_expires_at=page.chat_expires_at,
        time_left=_seconds(page.time_left),
        time_left_formatted=format_time_left(page.time_left),
    )


@router.post("/{connection_id}/read", response_model=MarkedCountOut)
def message_mark_read(
    connection_id: int,
    payload: MarkAsReadIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    marked = mark_read(db, connection_id, user_id, payload.message_ids, clock=clock)
    return MarkedCountOut(marked_count=marked)


@router.delete("/{message_id}")
def message_delete(
    message_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    delete_message(db, message_id, user_id)
    return {"deleted": True}
