from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.db import store_errors
from app.core.errors import (
    Conflict,
    Forbidden,
    InvalidInput,
    InvalidState,
    InvalidTarget,
    NotFound,
    RequestExpired,
)
from app.core.lifecycle_config import CHAT_WINDOW, CONNECTION_REQUEST_WINDOW
from app.models.profile import Profile
from app.modules.connections.models import Connection
from app.modules.connections.store import ConnectionStore
from app.modules.connections.windows import is_chat_open, request_has_expired
from app.modules.notifications.emitter import Notifier, default_notifier
from app.schemas.enums import (
    ConnectionDecision,
    ConnectionListType,
    ConnectionStatus,
    NotificationKind,
)


# ---------- CONNECTION LIFECYCLE ----------

def request_connection(
    db: Session,
    requester_id: str,
    receiver_id: str,
    message: Optional[str] = None,
    clock: Optional[Clock] = None,
    notifier: Optional[Notifier] = None,
) -> Connection:
    clock = clock or get_clock()
    notifier = notifier or default_notifier()

    if requester_id == receiver_id:
        raise InvalidTarget("Cannot send connection request to yourself")

    store = ConnectionStore(db)

    with store_errors(db, "request_connection"):
        if db.get(Profile, receiver_id) is None:
            raise NotFound("User not found")

        existing = store.find_by_pair(requester_id, receiver_id)
        if existing:
            logger.info(
                f"Duplicate connection request | requester={requester_id} "
                f"receiver={receiver_id} existing={existing.id} status={existing.status}"
            )
            raise Conflict("Connection already exists", status=existing.status)

        now = clock.now()
        conn = store.insert(
            Connection(
                requester_id=requester_id,
                receiver_id=receiver_id,
                status=ConnectionStatus.pending.value,
                message=message or "",
                requested_at=now,
                request_expires_at=now + CONNECTION_REQUEST_WINDOW,
            )
        )

    logger.info(f"Connection requested | connection={conn.id} requester={requester_id} receiver={receiver_id}")

    notifier.notify(
        receiver_id,
        NotificationKind.connection_request,
        {"connection_id": conn.id, "requester_id": requester_id},
    )
    return conn


def update_connection_status(
    db: Session,
    connection_id: int,
    actor_id: str,
    new_status: str,
    clock: Optional[Clock] = None,
    notifier: Optional[Notifier] = None,
) -> Connection:
    clock = clock or get_clock()
    notifier = notifier or default_notifier()

    try:
        decision = ConnectionDecision(new_status)
    except ValueError:
        raise InvalidInput(f"Unsupported status: {new_status}")

    store = ConnectionStore(db)

    with store_errors(db, "update_connection_status"):
        conn = store.get(connection_id)
        if not conn:
            raise NotFound("Connection not found")

        # only the receiver may act on a request
        if conn.receiver_id != actor_id:
            raise Forbidden("Not authorized to update this connection")

        if conn.status != ConnectionStatus.pending.value:
            raise InvalidState("Connection request is no longer pending", status=conn.status)

        now = clock.now()

        # expiry is checked before the action is applied
        if request_has_expired(conn, now):
            if not _expire(store, conn, notifier):
                _raise_stale(store, connection_id)
            raise RequestExpired("Connection request has expired", status=ConnectionStatus.expired.value)

        values = {"status": decision.value, "responded_at": now}
        if decision == ConnectionDecision.accepted:
            values["chat_expires_at"] = now + CHAT_WINDOW

        if not store.update_if_version(conn, from_status=ConnectionStatus.pending.value, **values):
            _raise_stale(store, connection_id)

    logger.info(f"Connection {conn.status} | connection={conn.id} by={actor_id}")

    if decision == ConnectionDecision.accepted:
        notifier.notify(
            conn.requester_id,
            NotificationKind.connection_accepted,
            {"connection_id": conn.id, "chat_expires_at": conn.chat_expires_at.isoformat()},
        )
    return conn


def sweep_expired_requests(
    db: Session,
    clock: Optional[Clock] = None,
    notifier: Optional[Notifier] = None,
) -> int:
    """
    Batch version of the lazy expiry done by update_connection_status.
    Optional: reads never trust a stored status over the timestamps.
    """
    clock = clock or get_clock()
    notifier = notifier or default_notifier()
    store = ConnectionStore(db)

    expired = 0
    with store_errors(db, "sweep_expired_requests"):
        for conn in store.stale_pending(clock.now()):
            if _expire(store, conn, notifier):
                expired += 1

    logger.info(f"Expired request sweep done | expired={expired}")
    return expired


def _expire(store: ConnectionStore, conn: Connection, notifier: Notifier) -> bool:
    if not store.update_if_version(
        conn, from_status=ConnectionStatus.pending.value, status=ConnectionStatus.expired.value
    ):
        # someone else got there first; their outcome stands
        logger.debug(f"Expiry lost race | connection={conn.id}")
        return False

    logger.info(f"Connection expired | connection={conn.id}")
    notifier.notify(
        conn.requester_id,
        NotificationKind.connection_expired,
        {"connection_id": conn.id, "receiver_id": conn.receiver_id},
    )
    return True


def _raise_stale(store: ConnectionStore, connection_id: int) -> None:
    current = store.get(connection_id)
    status = current.status if current else None
    logger.info(f"Connection write lost race | connection={connection_id} status={status}")
    if status == ConnectionStatus.expired.value:
        raise RequestExpired("Connection request has expired", status=status)
    raise InvalidState("Connection request is no longer pending", status=status)


# ---------- READS ----------

def get_connection(db: Session, connection_id: int, user_id: str) -> Connection:
    with store_errors(db, "get_connection"):
        conn = ConnectionStore(db).get(connection_id)
    if not conn:
        raise NotFound("Connection not found")
    if user_id not in conn.endpoints():
        raise Forbidden("Not authorized to view this connection")
    return conn


def list_connections(
    db: Session,
    user_id: str,
    status: Optional[ConnectionStatus] = None,
    list_type: ConnectionListType = ConnectionListType.all,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Connection], int]:
    with store_errors(db, "list_connections"):
        return ConnectionStore(db).list_for_user(
            user_id,
            status=status,
            list_type=list_type,
            offset=(page - 1) * limit,
            limit=limit,
        )


def active_chats(db: Session, user_id: str, clock: Optional[Clock] = None) -> List[Connection]:
    clock = clock or get_clock()
    now = clock.now()
    with store_errors(db, "active_chats"):
        rows = ConnectionStore(db).open_chats_for_user(user_id, now)
    # the query already filters; the predicate stays authoritative
    return [c for c in rows if is_chat_open(c, now)]
