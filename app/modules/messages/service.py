from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.db import store_errors
from app.core.errors import Forbidden, InvalidState, NotFound, Unavailable
from app.core.lifecycle_config import MESSAGE_WRITE_RETRIES
from app.modules.connections.models import Connection
from app.modules.connections.store import ConnectionStore
from app.modules.connections.windows import is_chat_open, time_remaining
from app.modules.messages.models import Message
from app.modules.notifications.emitter import Notifier, default_notifier
from app.schemas.enums import NotificationKind

TIMESTAMP_STEP = timedelta(microseconds=1)


@dataclass
class MessagePage:
    messages: List[Message]
    unread_count: int
    total: int
    has_more: bool
    chat_expires_at: Optional[datetime]
    time_left: Optional[timedelta]


@dataclass
class ChatSummary:
    connection: Connection
    unread_count: int
    last_message: Optional[Message]
    time_left: Optional[timedelta]


@dataclass
class ChatSummaryPage:
    chats: List[ChatSummary] = field(default_factory=list)

    @property
    def total_unread(self) -> int:
        return sum(c.unread_count for c in self.chats)


def _participant_connection(db: Session, connection_id: int, user_id: str, action: str) -> Connection:
    conn = ConnectionStore(db).get(connection_id)
    if not conn:
        raise NotFound("Connection not found")
    if user_id not in conn.endpoints():
        raise Forbidden(f"Not authorized to {action} in this connection")
    return conn


def _next_timestamp(db: Session, connection_id: int, now: datetime) -> datetime:
    latest = db.execute(
        select(func.max(Message.timestamp)).where(Message.connection_id == connection_id)
    ).scalar()
    if latest is not None and now <= latest:
        return latest + TIMESTAMP_STEP
    return now


def _insert_message(db: Session, msg: Message, now: datetime) -> Message:
    """
    Stamp and insert. The (connection, timestamp) pair is unique, so a
    concurrent post that took the same timestamp makes this insert fail;
    re-read the newest timestamp and try again.
    """
    for attempt in range(1, MESSAGE_WRITE_RETRIES + 1):
        msg.timestamp = _next_timestamp(db, msg.connection_id, now)
        db.add(msg)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.debug(
                f"Message timestamp taken | connection={msg.connection_id} "
                f"timestamp={msg.timestamp.isoformat()} attempt={attempt}"
            )
            continue

        db.refresh(msg)
        return msg

    logger.warning(f"Message insert gave up | connection={msg.connection_id}")
    raise Unavailable("Conversation is busy, try again")


# ---------- MESSAGE GATE ----------

def post_message(
    db: Session,
    connection_id: int,
    sender_id: str,
    content: str,
    media_url: Optional[str] = None,
    media_type: Optional[str] = None,
    clock: Optional[Clock] = None,
    notifier: Optional[Notifier] = None,
) -> Message:
    """
    The one place that decides whether a message may be written. The
    chat window is checked against the clock at the moment of the write.
    """
    clock = clock or get_clock()
    notifier = notifier or default_notifier()

    with store_errors(db, "post_message"):
        conn = _participant_connection(db, connection_id, sender_id, "send messages")

        now = clock.now()
        if not is_chat_open(conn, now):
            logger.info(f"Message refused, chat closed | connection={connection_id} sender={sender_id}")
            raise InvalidState("chat window closed", status=conn.status)

        receiver_id = conn.other_endpoint(sender_id)
        msg = _insert_message(
            db,
            Message(
                connection_id=conn.id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                is_media=bool(media_url),
                media_url=media_url,
                media_type=media_type,
            ),
            now,
        )

    logger.info(f"Message posted | connection={connection_id} message={msg.id} sender={sender_id}")

    notifier.notify(
        msg.receiver_id,
        NotificationKind.new_message,
        {"connection_id": conn.id, "message_id": msg.id, "sender_id": sender_id},
    )
    return msg


def mark_read(
    db: Session,
    connection_id: int,
    reader_id: str,
    message_ids: List[int],
    clock: Optional[Clock] = None,
) -> int:
    """Idempotent: already-read messages are not counted again."""
    clock = clock or get_clock()

    with store_errors(db, "mark_read"):
        _participant_connection(db, connection_id, reader_id, "mark messages as read")

        result = db.execute(
            update(Message)
            .where(
                Message.id.in_(message_ids),
                Message.connection_id == connection_id,
                Message.receiver_id == reader_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=clock.now())
            .execution_options(synchronize_session=False)
        )
        db.commit()

    logger.debug(f"Messages marked read | connection={connection_id} reader={reader_id} count={result.rowcount}")
    return result.rowcount


def delete_message(db: Session, message_id: int, requester_id: str) -> Message:
    with store_errors(db, "delete_message"):
        msg = db.get(Message, message_id, populate_existing=True)
        if not msg:
            raise NotFound("Message not found")

        # only the sender can delete their own messages
        if msg.sender_id != requester_id:
            raise Forbidden("Not authorized to delete this message")

        msg.is_deleted = True
        db.commit()

    logger.info(f"Message deleted | message={message_id} by={requester_id}")
    return msg


# ---------- READS ----------

def _unread_count(db: Session, connection_id: int, user_id: str) -> int:
    return db.execute(
        select(func.count())
        .select_from(Message)
        .where(
            Message.connection_id == connection_id,
            Message.receiver_id == user_id,
            Message.is_read.is_(False),
            Message.is_deleted.is_(False),
        )
    ).scalar_one()


def _boundary(db: Session, connection_id: int, message_id: Optional[int]) -> Optional[datetime]:
    if message_id is None:
        return None
    msg = db.get(Message, message_id)
    if not msg or msg.connection_id != connection_id:
        logger.debug(f"Ignoring unknown page boundary | connection={connection_id} message={message_id}")
        return None
    return msg.timestamp


def list_messages(
    db: Session,
    connection_id: int,
    user_id: str,
    before: Optional[int] = None,
    after: Optional[int] = None,
    limit: int = 50,
    clock: Optional[Clock] = None,
) -> MessagePage:
    """
    Page through a conversation relative to existing messages. Without
    `after` the newest page (older than `before`, if given) is returned;
    with only `after` the page immediately following it. Always oldest
    first.
    """
    clock = clock or get_clock()

    with store_errors(db, "list_messages"):
        conn = _participant_connection(db, connection_id, user_id, "view messages")

        filters = [Message.connection_id == connection_id, Message.is_deleted.is_(False)]
        before_ts = _boundary(db, connection_id, before)
        after_ts = _boundary(db, connection_id, after)
        if before_ts is not None:
            filters.append(Message.timestamp < before_ts)
        if after_ts is not None:
            filters.append(Message.timestamp > after_ts)

        forward = after_ts is not None and before_ts is None
        order = Message.timestamp.asc() if forward else Message.timestamp.desc()

        rows = list(
            db.execute(select(Message).where(*filters).order_by(order).limit(limit + 1)).scalars().all()
        )
        has_more = len(rows) > limit
        rows = rows[:limit]
        if not forward:
            rows.reverse()

        total = db.execute(
            select(func.count())
            .select_from(Message)
            .where(Message.connection_id == connection_id, Message.is_deleted.is_(False))
        ).scalar_one()
        unread = _unread_count(db, connection_id, user_id)

    return MessagePage(
        messages=rows,
        unread_count=unread,
        total=total,
        has_more=has_more,
        chat_expires_at=conn.chat_expires_at,
        time_left=time_remaining(conn, clock.now()),
    )


def chat_summary(db: Session, user_id: str, clock: Optional[Clock] = None) -> ChatSummaryPage:
    clock = clock or get_clock()
    now = clock.now()

    with store_errors(db, "chat_summary"):
        open_chats = [
            c for c in ConnectionStore(db).open_chats_for_user(user_id, now) if is_chat_open(c, now)
        ]

        chats = []
        for conn in open_chats:
            last = db.execute(
                select(Message)
                .where(Message.connection_id == conn.id, Message.is_deleted.is_(False))
                .order_by(Message.timestamp.desc())
                .limit(1)
            ).scalars().first()

            chats.append(
                ChatSummary(
                    connection=conn,
                    unread_count=_unread_count(db, conn.id, user_id),
                    last_message=last,
                    time_left=time_remaining(conn, now),
                )
            )

    # most recent activity first, silent chats last
    chats.sort(key=lambda c: c.last_message.timestamp if c.last_message else datetime.min, reverse=True)
    return ChatSummaryPage(chats=chats)
