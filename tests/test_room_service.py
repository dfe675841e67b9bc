from datetime import timedelta

import pytest
from sqlalchemy import update

from app.core.auth import AuthUser
from app.core.errors import (
    CapacityExceeded,
    Conflict,
    Forbidden,
    InvalidInput,
    InvalidState,
    NotFound,
    Unavailable,
)
from app.modules.rooms.models import Room
from app.modules.rooms.service import (
    create_room,
    delete_room,
    get_room,
    join_room,
    leave_room,
    list_rooms,
    my_rooms,
    update_room,
)
from app.modules.rooms.store import RoomStore
from app.schemas.enums import RoomStatus

from conftest import T0


def _fields(**overrides):
    fields = {
        "room_name": "Sunday hikers",
        "description": "Trails around the city, every weekend",
        "room_type": "hobby",
        "tags": ["outdoors"],
        "max_participants": 5,
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def room_of(db, clock, premium):
    def _room_of(user_id="alice", **overrides):
        return create_room(db, premium(user_id), _fields(**overrides), clock=clock)
    return _room_of


def _join(db, clock, notifier, room_id, user):
    return join_room(db, room_id, user, clock=clock, notifier=notifier)


# ---------- CreateRoom ----------

def test_creator_is_first_participant(room_of):
    room = room_of("alice")

    assert room.created_by == "alice"
    assert room.participant_ids == ["alice"]
    assert room.is_active is True
    assert room.duration == 60
    assert room.version == 1


def test_create_requires_premium(db, clock):
    with pytest.raises(Forbidden):
        create_room(db, AuthUser("alice", False), _fields(), clock=clock)


def test_create_rejects_past_schedule(db, clock, premium):
    with pytest.raises(InvalidInput):
        create_room(db, premium("alice"), _fields(scheduled_for=T0 - timedelta(minutes=1)), clock=clock)
    assert db.query(Room).count() == 0


# ---------- JoinRoom ----------

def test_capacity_is_enforced(db, clock, notifier, premium, room_of):
    room = room_of("alice", max_participants=2)

    joined = _join(db, clock, notifier, room.id, premium("bob"))
    assert joined.participant_ids == ["alice", "bob"]
    assert notifier.sent == [("alice", "room_joined", {"room_id": room.id, "participant_id": "bob"})]

    with pytest.raises(CapacityExceeded):
        _join(db, clock, notifier, room.id, premium("carol"))
    assert RoomStore(db).get(room.id).participant_ids == ["alice", "bob"]


def test_join_twice_conflicts(db, clock, notifier, premium, room_of):
    room = room_of("alice")
    _join(db, clock, notifier, room.id, premium("bob"))

    with pytest.raises(Conflict):
        _join(db, clock, notifier, room.id, premium("bob"))


def test_join_inactive_room(db, clock, notifier, premium, room_of):
    room = room_of("alice")
    delete_room(db, room.id, premium("alice"))

    with pytest.raises(InvalidState):
        _join(db, clock, notifier, room.id, premium("bob"))


def test_join_ended_room(db, clock, notifier, premium, room_of):
    room = room_of("alice", scheduled_for=T0 + timedelta(hours=1), duration=60)

    clock.advance(hours=2)
    with pytest.raises(InvalidState) as exc:
        _join(db, clock, notifier, room.id, premium("bob"))
    assert exc.value.message == "ended"


def test_join_upcoming_room_is_allowed(db, clock, notifier, premium, room_of):
    room = room_of("alice", scheduled_for=T0 + timedelta(days=1))
    assert "bob" in _join(db, clock, notifier, room.id, premium("bob")).participant_ids


def test_join_requires_premium(db, clock, notifier, room_of):
    room = room_of("alice")
    with pytest.raises(Forbidden):
        _join(db, clock, notifier, room.id, AuthUser("bob", False))


def test_join_unknown_room(db, clock, notifier, premium):
    with pytest.raises(NotFound):
        _join(db, clock, notifier, 999, premium("bob"))


def test_concurrent_join_for_last_spot(db, clock, notifier, premium, room_of, monkeypatch):
    room = room_of("alice", max_participants=2)
    original = RoomStore.update_if_version
    raced = []

    def racing(self, target, **values):
        if not raced:
            raced.append(True)
            # carol takes the last spot between bob's read and write
            self.db.execute(
                update(Room)
                .where(Room.id == target.id)
                .values(participant_ids=["alice", "carol"], version=Room.version + 1)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        return original(self, target, **values)

    monkeypatch.setattr(RoomStore, "update_if_version", racing)

    with pytest.raises(CapacityExceeded):
        _join(db, clock, notifier, room.id, premium("bob"))

    stored = RoomStore(db).get(room.id)
    assert stored.participant_ids == ["alice", "carol"]
    assert stored.version == 2


def test_write_gives_up_after_retries(db, clock, notifier, premium, room_of, monkeypatch):
    room = room_of("alice")
    monkeypatch.setattr(RoomStore, "update_if_version", lambda self, target, **values: False)

    with pytest.raises(Unavailable):
        _join(db, clock, notifier, room.id, premium("bob"))
    assert notifier.sent == []


# ---------- LeaveRoom ----------

def test_creator_leaving_hands_room_to_earliest_joiner(db, clock, notifier, premium, room_of):
    room = room_of("alice")
    _join(db, clock, notifier, room.id, premium("bob"))
    _join(db, clock, notifier, room.id, premium("carol"))

    left = leave_room(db, room.id, premium("alice"))

    assert left.created_by == "bob"
    assert left.participant_ids == ["bob", "carol"]
    assert left.is_active is True


def test_last_participant_leaving_deactivates(db, premium, room_of):
    room = room_of("alice")

    left = leave_room(db, room.id, premium("alice"))

    assert left.participant_ids == []
    assert left.is_active is False


def test_leave_when_not_participant(db, premium, room_of):
    room = room_of("alice")
    with pytest.raises(InvalidState):
        leave_room(db, room.id, premium("bob"))


# ---------- UpdateRoom / DeleteRoom ----------

def test_update_by_creator(db, clock, premium, room_of):
    room = room_of("alice")

    updated = update_room(
        db, room.id, premium("alice"), {"room_name": "Trail runners", "tags": ["running"]}, clock=clock
    )
    assert updated.room_name == "Trail runners"
    assert updated.tags == ["running"]
    assert updated.version == 2


def test_update_by_non_creator_is_forbidden(db, clock, premium, room_of):
    room = room_of("alice")
    with pytest.raises(Forbidden):
        update_room(db, room.id, premium("bob"), {"room_name": "Mine now"}, clock=clock)


def test_update_cannot_shrink_below_participants(db, clock, notifier, premium, room_of):
    room = room_of("alice")
    _join(db, clock, notifier, room.id, premium("bob"))
    _join(db, clock, notifier, room.id, premium("carol"))

    with pytest.raises(InvalidState):
        update_room(db, room.id, premium("alice"), {"max_participants": 2}, clock=clock)
    assert update_room(db, room.id, premium("alice"), {"max_participants": 3}, clock=clock).max_participants == 3


def test_update_rejects_past_schedule_and_unknown_fields(db, clock, premium, room_of):
    room = room_of("alice")

    with pytest.raises(InvalidInput):
        update_room(db, room.id, premium("alice"), {"scheduled_for": T0 - timedelta(hours=1)}, clock=clock)
    with pytest.raises(InvalidInput):
        update_room(db, room.id, premium("alice"), {"created_by": "bob"}, clock=clock)


def test_update_can_clear_schedule(db, clock, premium, room_of):
    room = room_of("alice", scheduled_for=T0 + timedelta(days=1))

    updated = update_room(db, room.id, premium("alice"), {"scheduled_for": None}, clock=clock)
    assert updated.scheduled_for is None


def test_delete_is_creator_only_and_soft(db, premium, room_of):
    room = room_of("alice")

    with pytest.raises(Forbidden):
        delete_room(db, room.id, premium("bob"))

    delete_room(db, room.id, premium("alice"))
    stored = RoomStore(db).get(room.id)
    assert stored is not None
    assert stored.is_active is False


# ---------- reads ----------

def test_private_room_visible_to_participants_only(db, clock, premium, room_of):
    room = room_of("alice", is_private=True)

    assert get_room(db, room.id, premium("alice")).id == room.id
    with pytest.raises(Forbidden):
        get_room(db, room.id, premium("bob"))

    rooms, total = list_rooms(db, premium("bob"), clock=clock)
    assert rooms == [] and total == 0


def test_list_rooms_filters(db, clock, premium, room_of):
    live = room_of("alice", tags=["books"])
    soon = room_of("bob", room_type="event", scheduled_for=T0 + timedelta(hours=3))
    later = room_of("carol", room_type="event", scheduled_for=T0 + timedelta(hours=1))
    gone = room_of("dave")
    delete_room(db, gone.id, premium("dave"))

    viewer = premium("alice")

    rooms, total = list_rooms(db, viewer, clock=clock)
    assert total == 3
    assert gone.id not in [r.id for r in rooms]

    rooms, _ = list_rooms(db, viewer, room_type="event", clock=clock)
    assert {r.id for r in rooms} == {soon.id, later.id}

    rooms, _ = list_rooms(db, viewer, tags=["books", "chess"], clock=clock)
    assert [r.id for r in rooms] == [live.id]

    rooms, _ = list_rooms(db, viewer, status=RoomStatus.upcoming, clock=clock)
    assert [r.id for r in rooms] == [later.id, soon.id]

    rooms, total = list_rooms(db, viewer, page=2, limit=2, clock=clock)
    assert total == 3
    assert len(rooms) == 1


def test_my_rooms_splits_created_and_joined(db, clock, notifier, premium, room_of):
    own = room_of("alice")
    other = room_of("bob")
    room_of("carol")
    _join(db, clock, notifier, other.id, premium("alice"))

    created, participating = my_rooms(db, premium("alice"))

    assert [r.id for r in created] == [own.id]
    assert [r.id for r in participating] == [other.id]
