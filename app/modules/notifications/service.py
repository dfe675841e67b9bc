import uuid
from datetime import datetime
from typing import List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.db import store_errors
from app.core.errors import InvalidInput
from app.models.push_token import PushToken
from app.modules.notifications.models import Notification


def _is_expo_token(token: str) -> bool:
    return token.startswith("ExponentPushToken[")


def list_notifications(
    db: Session,
    user_id: str,
    now: datetime,
    unread_only: bool = False,
    limit: int = 50,
) -> List[Notification]:
    filters = [Notification.user_id == user_id, Notification.expires_at > now]
    if unread_only:
        filters.append(Notification.is_read.is_(False))

    with store_errors(db, "list_notifications"):
        rows = db.execute(
            select(Notification)
            .where(*filters)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        ).scalars().all()
    return list(rows)


def mark_notifications_read(db: Session, user_id: str, ids: List[int], now: datetime) -> int:
    with store_errors(db, "mark_notifications_read"):
        result = db.execute(
            update(Notification)
            .where(
                Notification.id.in_(ids),
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    return result.rowcount


def register_push_token(db: Session, user_id: str, token: str, platform: str | None = None) -> PushToken:
    if not _is_expo_token(token):
        raise InvalidInput("Invalid Expo push token")

    with store_errors(db, "register_push_token"):
        existing = db.execute(
            select(PushToken).where(
                PushToken.user_id == user_id,
                PushToken.expo_push_token == token,
            )
        ).scalars().first()

        if existing:
            existing.platform = platform or existing.platform
            db.commit()
            return existing

        row = PushToken(id=uuid.uuid4().hex, user_id=user_id, expo_push_token=token, platform=platform)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
