from typing import List

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.orm import Session

from app.core.auth import get_current_user_id
from app.core.clock import Clock, get_clock
from app.core.db import get_db
from app.schemas.notifications import (
    MarkNotificationsReadIn,
    MarkedCountOut,
    NotificationOut,
    RegisterPushTokenIn,
)
from .service import list_notifications, mark_notifications_read, register_push_token

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationOut])
def my_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    user_id: str = Depends(get_current_user_id),
):
    return list_notifications(db, user_id, clock.now(), unread_only=unread_only)


@router.post("/read", response_model=MarkedCountOut)
def mark_read(
    payload: MarkNotificationsReadIn,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    user_id: str = Depends(get_current_user_id),
):
    marked = mark_notifications_read(db, user_id, payload.notification_ids, clock.now())
    return MarkedCountOut(marked_count=marked)


@router.post("/push-token")
def push_token(
    payload: RegisterPushTokenIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    register_push_token(db, user_id, payload.expo_push_token, payload.platform)
    logger.info(f"Push token registered | user={user_id}")
    return {"ok": True}
