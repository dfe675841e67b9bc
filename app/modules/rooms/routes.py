from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.auth import AuthUser, require_premium
from app.core.clock import Clock, get_clock
from app.core.db import get_db
from app.modules.notifications.emitter import Notifier, get_notifier
from app.schemas.base import Pagination
from app.schemas.enums import RoomStatus, RoomType
from app.schemas.rooms import CreateRoomIn, MyRoomsOut, RoomListOut, RoomView, UpdateRoomIn
from .models import Room
from .scheduling import room_ends_at, room_status
from .service import (
    create_room,
    join_room,
    leave_room,
    update_room,
    delete_room,
    get_room,
    list_rooms,
    my_rooms,
)

router = APIRouter(prefix="/rooms", tags=["rooms"])


def _view(room: Room, user_id: str, now) -> RoomView:
    participants = list(room.participant_ids or [])
    return RoomView(
        id=room.id,
        room_name=room.room_name,
        description=room.description,
        room_type=room.room_type,
        tags=list(room.tags or []),
        created_by=room.created_by,
        participant_ids=participants,
        max_participants=room.max_participants,
        is_private=room.is_private,
        is_active=room.is_active,
        scheduled_for=room.scheduled_for,
        duration=room.duration,
        created_at=room.created_at,
        status=room_status(room.scheduled_for, room.duration, now),
        ends_at=room_ends_at(room.scheduled_for, room.duration),
        participant_count=len(participants),
        spots_available=max(0, room.max_participants - len(participants)),
        is_participant=user_id in participants,
        is_creator=room.created_by == user_id,
    )


def _fields(payload, exclude_unset: bool = False) -> dict:
    data = payload.model_dump(exclude_unset=exclude_unset)
    if exclude_unset:
        # an explicit null only means something for the schedule (always live)
        data = {k: v for k, v in data.items() if v is not None or k == "scheduled_for"}
    if data.get("room_type") is not None:
        data["room_type"] = RoomType(data["room_type"]).value
    return data


@router.post("", response_model=RoomView, status_code=status.HTTP_201_CREATED)
def room_create(
    payload: CreateRoomIn,
    user: AuthUser = Depends(require_premium),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    room = create_room(db, user, _fields(payload), clock=clock)
    return _view(room, user.user_id, clock.now())


@router.get("", response_model=RoomListOut)
def room_list(
    room_type: Optional[RoomType] = None,
    tags: Optional[List[str]] = Query(None),
    status_filter: Optional[RoomStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    user: AuthUser = Depends(require_premium),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    rooms, total = list_rooms(
        db,
        user,
        room_type=room_type.value if room_type else None,
        tags=tags,
        status=status_filter,
        page=page,
        limit=limit,
        clock=clock,
    )
    now = clock.now()
    return RoomListOut(
        rooms=[_view(r, user.user_id, now) for r in rooms],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/mine", response_model=MyRoomsOut)
def room_mine(
    user: AuthUser = Depends(require_premium),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    created, participating = my_rooms(db, user)
    now = clock.now()
    return MyRoomsOut(
        created_rooms=[_view(r, user.user_id, now) for r in created],
        participating_rooms=[_view(r, user.user_id, now) for r in participating],
    )


@router.get("/{room_id}", response_model=RoomView)
def room_detail(
    room_id: int,
    user: AuthUser = Depends(require_premium),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return _view(get_room(db, room_id, user), user.user_id, clock.now())


@router.post("/{room_id}/join", response_model=RoomView)
def room_join(
    room_id: int,
    user: AuthUser = Depends(require_premium),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
):
    room = join_room(db, room_id, user, clock=clock, notifier=notifier)
    return _view(room, user.user_id, clock.now())


@router.post("/{room_id}/leave")
def room_leave(
    room_id: int,
    user: AuthUser = Depends(require_premium),
    db: Session = Depends(get_db),
):
    room = leave_room(db, room_id, user)
    return {"left": True, "is_active": room.is_active, "created_by": room.created_by}


@router.patch("/{room_id}", response_model=RoomView)
def room_update(
    room_id: int,
    payload: UpdateRoomIn,
    user: AuthUser = Depends(require_premium),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    room = update_room(db, room_id, user, _fields(payload, exclude_unset=True), clock=clock)
    return _view(room, user.user_id, clock.now())


@router.delete("/{room_id}")
def room_delete(
    room_id: int,
    user: AuthUser = Depends(require_premium),
    db: Session = Depends(get_db),
):
    delete_room(db, room_id, user)
    return {"deleted": True}
