from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.auth import get_current_user_id
from app.core.clock import Clock, get_clock
from app.core.db import get_db
from app.modules.notifications.emitter import Notifier, get_notifier
from app.schemas.base import Pagination
from app.schemas.connections import (
    ActiveChat,
    ActiveChatsOut,
    ConnectionListOut,
    ConnectionOut,
    ConnectionRequestIn,
    ConnectionStatusUpdateIn,
    ConnectionView,
)
from app.schemas.enums import ConnectionListType, ConnectionStatus
from app.services.user_summaries import load_summaries, summary_for
from .service import (
    request_connection,
    update_connection_status,
    get_connection,
    list_connections,
    active_chats,
)
from .windows import format_time_left, is_chat_open, seconds_remaining, time_remaining

router = APIRouter(prefix="/connections", tags=["connections"])


def _view(conn, viewer_id: str, summaries, now) -> ConnectionView:
    return ConnectionView(
        id=conn.id,
        other_user=summary_for(summaries, conn.other_endpoint(viewer_id)),
        status=conn.status,
        message=conn.message or "",
        requested_at=conn.requested_at,
        request_expires_at=conn.request_expires_at,
        chat_expires_at=conn.chat_expires_at,
        is_requester=conn.requester_id == viewer_id,
        is_chat_open=is_chat_open(conn, now),
        time_left=seconds_remaining(conn, now),
    )


@router.post("", response_model=ConnectionOut, status_code=status.HTTP_201_CREATED)
def connect_request(
    payload: ConnectionRequestIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
):
    return request_connection(
        db,
        user_id,
        payload.receiver_id,
        payload.message,
        clock=clock,
        notifier=notifier,
    )


@router.get("", response_model=ConnectionListOut)
def connection_list(
    status_filter: Optional[ConnectionStatus] = Query(None, alias="status"),
    list_type: ConnectionListType = Query(ConnectionListType.all, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    rows, total = list_connections(db, user_id, status_filter, list_type, page, limit)
    now = clock.now()
    summaries = load_summaries(db, [c.other_endpoint(user_id) for c in rows])

    return ConnectionListOut(
        connections=[_view(c, user_id, summaries, now) for c in rows],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/active", response_model=ActiveChatsOut)
def connection_active_chats(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    rows = active_chats(db, user_id, clock=clock)
    now = clock.now()
    summaries = load_summaries(db, [c.other_endpoint(user_id) for c in rows])

    chats = [
        ActiveChat(
            connection_id=c.id,
            other_user=summary_for(summaries, c.other_endpoint(user_id)),
            chat_expires_at=c.chat_expires_at,
            time_left=seconds_remaining(c, now),
            time_left_formatted=format_time_left(time_remaining(c, now)),
        )
        for c in rows
    ]
    return ActiveChatsOut(active_chats=chats, count=len(chats))


@router.get("/{connection_id}", response_model=ConnectionView)
def connection_detail(
    connection_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    conn = get_connection(db, connection_id, user_id)
    summaries = load_summaries(db, [conn.other_endpoint(user_id)])
    return _view(conn, user_id, summaries, clock.now())


@router.patch("/{connection_id}/status", response_model=ConnectionOut)
def connection_update_status(
    connection_id: int,
    payload: ConnectionStatusUpdateIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
):
    return update_connection_status(
        db,
        connection_id,
        user_id,
        payload.status.value,
        clock=clock,
        notifier=notifier,
    )
