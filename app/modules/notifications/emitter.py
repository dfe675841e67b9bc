import asyncio
from typing import Any, Callable, Dict, List, Optional, Protocol

import httpx
from fastapi import BackgroundTasks
from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.config import EXPO_PUSH_ENABLED, EXPO_PUSH_URL
from app.core.db import SessionLocal
from app.core.lifecycle_config import NOTIFICATION_TTL
from app.models.push_token import PushToken
from app.modules.notifications.models import Notification
from app.schemas.enums import NotificationKind


TEMPLATES: Dict[NotificationKind, tuple[str, str]] = {
    NotificationKind.connection_request: (
        "New Connection Request",
        "Someone wants to connect with you",
    ),
    NotificationKind.connection_accepted: (
        "Connection Accepted!",
        "Your connection request was accepted. You have 24 hours to start chatting!",
    ),
    NotificationKind.connection_expired: (
        "Request Expired",
        "Your connection request expired before it was answered",
    ),
    NotificationKind.new_message: (
        "New Message",
        "You have a new message",
    ),
    NotificationKind.room_joined: (
        "New Room Participant",
        "Someone joined your room",
    ),
}


class Notifier(Protocol):
    def notify(self, user_id: str, kind: NotificationKind, payload: Dict[str, Any]) -> None: ...


# ---------- expo push ----------

async def send_expo_push(push_url: str, messages: List[Dict[str, Any]]) -> None:
    """Runs after the response has gone out; never raises."""
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.post(push_url, json=messages)
        if resp.status_code >= 400:
            logger.warning(f"Expo push rejected | status={resp.status_code} body={resp.text[:200]}")
        else:
            logger.debug(f"Expo push sent | count={len(messages)}")
    except httpx.HTTPError as e:
        logger.warning(f"Expo push failed: {e}")


def _send_now(func: Callable[..., Any], *args: Any) -> None:
    # outside a request (jobs, shell) there is nothing to defer to
    asyncio.run(func(*args))


class NotificationEmitter:
    """
    Best-effort side channel. Runs after the state change it reports has
    been committed, in its own session, and never raises. Pushes are
    handed to `schedule` (a request's BackgroundTasks.add_task) so the
    caller never waits on the push service.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        clock: Optional[Clock] = None,
        push_enabled: bool = EXPO_PUSH_ENABLED,
        push_url: str = EXPO_PUSH_URL,
        schedule: Optional[Callable[..., Any]] = None,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._push_enabled = push_enabled
        self._push_url = push_url
        self._schedule = schedule or _send_now

    def notify(self, user_id: str, kind: NotificationKind, payload: Dict[str, Any]) -> None:
        try:
            self._notify(user_id, NotificationKind(kind), payload)
        except Exception:
            logger.exception(f"Notification dropped | user={user_id} kind={kind}")

    def _notify(self, user_id: str, kind: NotificationKind, payload: Dict[str, Any]) -> None:
        title, message = TEMPLATES[kind]
        now = (self._clock or get_clock()).now()

        with self._session_factory() as db:
            db.add(
                Notification(
                    user_id=user_id,
                    kind=kind.value,
                    title=title,
                    message=message,
                    data=payload,
                    expires_at=now + NOTIFICATION_TTL,
                    created_at=now,
                )
            )
            db.commit()
            tokens = self._tokens_for(db, user_id) if self._push_enabled else []

        logger.debug(f"Notification stored | user={user_id} kind={kind.value}")

        if tokens:
            messages = [
                {
                    "to": token,
                    "sound": "default",
                    "title": title,
                    "body": message,
                    "data": {"type": kind.value, **payload},
                    "priority": "high",
                }
                for token in tokens
            ]
            self._schedule(send_expo_push, self._push_url, messages)

    def _tokens_for(self, db: Session, user_id: str) -> List[str]:
        rows = db.execute(
            select(PushToken.expo_push_token)
            .where(PushToken.user_id == user_id)
            .order_by(PushToken.updated_at.desc())
        ).scalars().all()
        return [t for t in rows if t]


_default_notifier: Optional[NotificationEmitter] = None


def default_notifier() -> Notifier:
    """Emitter for callers outside a request; pushes are sent inline."""
    global _default_notifier
    if _default_notifier is None:
        _default_notifier = NotificationEmitter()
    return _default_notifier


# --- FastAPI dependency ---
def get_notifier(background_tasks: BackgroundTasks) -> Notifier:
    return NotificationEmitter(schedule=background_tasks.add_task)
