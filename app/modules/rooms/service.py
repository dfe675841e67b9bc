from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy.orm import Session

from app.core.auth import AuthUser
from app.core.clock import Clock, get_clock
from app.core.db import store_errors
from app.core.errors import (
    CapacityExceeded,
    Conflict,
    Forbidden,
    InvalidInput,
    InvalidState,
    NotFound,
    Unavailable,
)
from app.core.lifecycle_config import (
    DEFAULT_ROOM_DURATION_MINUTES,
    DEFAULT_ROOM_MAX_PARTICIPANTS,
    ROOM_WRITE_RETRIES,
)
from app.modules.notifications.emitter import Notifier, default_notifier
from app.modules.rooms.models import Room
from app.modules.rooms.scheduling import room_status
from app.modules.rooms.store import RoomStore
from app.schemas.enums import NotificationKind, RoomStatus

UPDATABLE_FIELDS = (
    "room_name",
    "description",
    "room_type",
    "tags",
    "max_participants",
    "is_private",
    "scheduled_for",
    "duration",
)


# ---------- helpers ----------

def _require_premium(user: AuthUser, action: str) -> None:
    if not user.is_premium:
        raise Forbidden(f"Premium subscription required to {action} rooms")


def _check_schedule(scheduled_for: Optional[datetime], now: datetime) -> None:
    if scheduled_for is not None and scheduled_for < now:
        raise InvalidInput("Scheduled date must be in the future")


def _write(
    db: Session,
    room_id: int,
    mutate: Callable[[Room], Dict[str, Any]],
    op: str,
) -> Room:
    """
    Read-validate-write loop. `mutate` sees a fresh read on every attempt
    and either raises or returns the new column values; the write only
    lands if the room is unchanged since that read.
    """
    store = RoomStore(db)

    with store_errors(db, op):
        for attempt in range(1, ROOM_WRITE_RETRIES + 1):
            room = store.get(room_id)
            if not room:
                raise NotFound("Room not found")

            values = mutate(room)
            if store.update_if_version(room, **values):
                return room

            logger.debug(f"Room write conflict | room={room_id} op={op} attempt={attempt}")

    logger.warning(f"Room write gave up | room={room_id} op={op}")
    raise Unavailable("Room is busy, try again")


def can_view(room: Room, user_id: str) -> bool:
    return not room.is_private or user_id in (room.participant_ids or [])


# ---------- ROOM SCHEDULER ----------

def create_room(
    db: Session,
    user: AuthUser,
    fields: Dict[str, Any],
    clock: Optional[Clock] = None,
) -> Room:
    clock = clock or get_clock()
    _require_premium(user, "create")
    _check_schedule(fields.get("scheduled_for"), clock.now())

    room = Room(
        room_name=fields["room_name"],
        description=fields["description"],
        room_type=fields["room_type"],
        tags=list(fields.get("tags") or []),
        max_participants=fields.get("max_participants") or DEFAULT_ROOM_MAX_PARTICIPANTS,
        is_private=bool(fields.get("is_private", False)),
        scheduled_for=fields.get("scheduled_for"),
        duration=fields.get("duration") or DEFAULT_ROOM_DURATION_MINUTES,
        created_by=user.user_id,
        # creator joins automatically
        participant_ids=[user.user_id],
    )

    with store_errors(db, "create_room"):
        room = RoomStore(db).insert(room)

    logger.info(f"Room created | room={room.id} creator={user.user_id}")
    return room


def join_room(
    db: Session,
    room_id: int,
    user: AuthUser,
    clock: Optional[Clock] = None,
    notifier: Optional[Notifier] = None,
) -> Room:
    clock = clock or get_clock()
    notifier = notifier or default_notifier()
    _require_premium(user, "join")

    def mutate(room: Room) -> Dict[str, Any]:
        participants = list(room.participant_ids or [])

        if not room.is_active:
            raise InvalidState("Room is not active")
        if user.user_id in participants:
            raise Conflict("Already a participant in this room")
        if len(participants) >= room.max_participants:
            raise CapacityExceeded("Room is full")
        if room_status(room.scheduled_for, room.duration, clock.now()) == RoomStatus.ended:
            raise InvalidState("ended")

        return {"participant_ids": participants + [user.user_id]}

    room = _write(db, room_id, mutate, "join_room")
    logger.info(f"Room joined | room={room_id} user={user.user_id} size={len(room.participant_ids)}")

    notifier.notify(
        room.created_by,
        NotificationKind.room_joined,
        {"room_id": room.id, "participant_id": user.user_id},
    )
    return room


def leave_room(db: Session, room_id: int, user: AuthUser) -> Room:
    _require_premium(user, "leave")

    def mutate(room: Room) -> Dict[str, Any]:
        participants = list(room.participant_ids or [])
        if user.user_id not in participants:
            raise InvalidState("Not a participant in this room")

        remaining = [p for p in participants if p != user.user_id]
        values: Dict[str, Any] = {"participant_ids": remaining}

        # earliest joined remaining participant inherits the room
        if room.created_by == user.user_id and remaining:
            values["created_by"] = remaining[0]

        if not remaining:
            values["is_active"] = False
        return values

    room = _write(db, room_id, mutate, "leave_room")

    if not room.is_active:
        logger.info(f"Room emptied and deactivated | room={room_id}")
    else:
        logger.info(f"Room left | room={room_id} user={user.user_id} owner={room.created_by}")
    return room


def update_room(
    db: Session,
    room_id: int,
    user: AuthUser,
    changes: Dict[str, Any],
    clock: Optional[Clock] = None,
) -> Room:
    clock = clock or get_clock()
    _require_premium(user, "update")

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise InvalidInput(f"Cannot update fields: {', '.join(sorted(unknown))}")

    def mutate(room: Room) -> Dict[str, Any]:
        if room.created_by != user.user_id:
            raise Forbidden("Only room creator can update room details")

        if "scheduled_for" in changes:
            _check_schedule(changes["scheduled_for"], clock.now())

        count = len(room.participant_ids or [])
        new_max = changes.get("max_participants")
        if new_max is not None and new_max < count:
            raise InvalidState(
                f"Cannot reduce max participants below current participant count ({count})"
            )
        return dict(changes)

    room = _write(db, room_id, mutate, "update_room")
    logger.info(f"Room updated | room={room_id} fields={sorted(changes)}")
    return room


def delete_room(db: Session, room_id: int, user: AuthUser) -> Room:
    """Soft delete: the room is deactivated, never removed."""
    _require_premium(user, "delete")

    def mutate(room: Room) -> Dict[str, Any]:
        if room.created_by != user.user_id:
            raise Forbidden("Only room creator can delete room")
        return {"is_active": False}

    room = _write(db, room_id, mutate, "delete_room")
    logger.info(f"Room deactivated | room={room_id} by={user.user_id}")
    return room


# ---------- READS ----------

def get_room(db: Session, room_id: int, user: AuthUser) -> Room:
    _require_premium(user, "view")

    with store_errors(db, "get_room"):
        room = RoomStore(db).get(room_id)
    if not room:
        raise NotFound("Room not found")
    if not can_view(room, user.user_id):
        raise Forbidden("Access denied to private room")
    return room


def list_rooms(
    db: Session,
    user: AuthUser,
    room_type: Optional[str] = None,
    tags: Optional[List[str]] = None,
    status: Optional[RoomStatus] = None,
    page: int = 1,
    limit: int = 20,
    clock: Optional[Clock] = None,
) -> Tuple[List[Room], int]:
    clock = clock or get_clock()
    _require_premium(user, "view")
    now = clock.now()

    with store_errors(db, "list_rooms"):
        rooms = RoomStore(db).active(room_type)

    wanted_tags = set(tags or [])
    rooms = [
        r for r in rooms
        if can_view(r, user.user_id)
        and (not wanted_tags or wanted_tags & set(r.tags or []))
        and (status is None or room_status(r.scheduled_for, r.duration, now) == status)
    ]

    if status == RoomStatus.upcoming:
        rooms.sort(key=lambda r: r.scheduled_for)

    offset = (page - 1) * limit
    return rooms[offset:offset + limit], len(rooms)


def my_rooms(db: Session, user: AuthUser) -> Tuple[List[Room], List[Room]]:
    _require_premium(user, "view")

    with store_errors(db, "my_rooms"):
        rooms = RoomStore(db).active()

    created = [r for r in rooms if r.created_by == user.user_id]
    participating = [
        r for r in rooms
        if r.created_by != user.user_id and user.user_id in (r.participant_ids or [])
    ]
    return created, participating
