import asyncio
from datetime import timedelta

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from app.core.db import SessionLocal
from app.core.errors import InvalidInput
from app.models.push_token import PushToken
from app.modules.connections.service import request_connection
from app.modules.notifications.emitter import NotificationEmitter, send_expo_push
from app.modules.notifications.models import Notification
from app.modules.notifications.service import (
    list_notifications,
    mark_notifications_read,
    register_push_token,
)
from app.schemas.enums import NotificationKind

from conftest import T0

TOKEN = "ExponentPushToken[abc123]"


@pytest.fixture
def emitter(db, clock):
    return NotificationEmitter(session_factory=SessionLocal, clock=clock, push_enabled=False)


def test_emitter_stores_notification(db, emitter):
    emitter.notify("bob", NotificationKind.connection_request, {"connection_id": 1, "requester_id": "alice"})

    row = db.query(Notification).one()
    assert row.user_id == "bob"
    assert row.kind == "connection_request"
    assert row.title == "New Connection Request"
    assert row.data == {"connection_id": 1, "requester_id": "alice"}
    assert row.is_read is False
    assert row.expires_at == T0 + timedelta(days=30)


def test_emitter_never_raises_when_store_is_down(clock):
    def broken_session():
        raise OperationalError("INSERT", {}, Exception("database is down"))

    emitter = NotificationEmitter(session_factory=broken_session, clock=clock, push_enabled=False)
    emitter.notify("bob", NotificationKind.new_message, {"connection_id": 1})


def test_emitter_defers_push_to_scheduler(db, clock):
    register_push_token(db, "bob", TOKEN, "ios")
    scheduled = []

    emitter = NotificationEmitter(
        session_factory=SessionLocal,
        clock=clock,
        push_enabled=True,
        push_url="https://push.test/send",
        schedule=lambda func, *args: scheduled.append((func, args)),
    )
    emitter.notify("bob", NotificationKind.connection_accepted, {"connection_id": 7})

    [(func, (url, messages))] = scheduled
    assert func is send_expo_push
    assert url == "https://push.test/send"
    assert messages == [
        {
            "to": TOKEN,
            "sound": "default",
            "title": "Connection Accepted!",
            "body": "Your connection request was accepted. You have 24 hours to start chatting!",
            "data": {"type": "connection_accepted", "connection_id": 7},
            "priority": "high",
        }
    ]


def test_core_operation_does_not_wait_on_push(db, users, clock, monkeypatch):
    register_push_token(db, "bob", TOKEN)
    sent = []

    async def post(self, url, **kwargs):
        sent.append(url)
        raise AssertionError("push must not run inside the operation")

    monkeypatch.setattr(httpx.AsyncClient, "post", post)
    scheduled = []
    emitter = NotificationEmitter(
        session_factory=SessionLocal,
        clock=clock,
        push_enabled=True,
        schedule=lambda func, *args: scheduled.append((func, args)),
    )

    conn = request_connection(db, "alice", "bob", clock=clock, notifier=emitter)

    assert conn.status == "pending"
    assert sent == []
    assert len(scheduled) == 1
    assert db.query(Notification).filter_by(user_id="bob").count() == 1


def test_push_failure_is_swallowed(monkeypatch):
    async def unreachable(self, url, **kwargs):
        raise httpx.ConnectError("push service unreachable")

    monkeypatch.setattr(httpx.AsyncClient, "post", unreachable)

    asyncio.run(send_expo_push("https://push.test/send", [{"to": TOKEN}]))


def test_push_posts_messages_to_expo(monkeypatch):
    posted = []

    async def accept(self, url, **kwargs):
        posted.append((url, kwargs["json"]))
        return httpx.Response(200, json={"data": []}, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", accept)

    asyncio.run(send_expo_push("https://push.test/send", [{"to": TOKEN}]))
    assert posted == [("https://push.test/send", [{"to": TOKEN}])]


def test_emitter_never_raises_on_bad_input(db, emitter):
    emitter.notify("bob", "not_a_kind", {"connection_id": 1})
    emitter.notify("bob", NotificationKind.new_message, {"connection_id": object()})

    assert db.query(Notification).count() == 0


def test_list_and_mark_read(db, emitter, clock):
    emitter.notify("bob", NotificationKind.connection_request, {"connection_id": 1})
    emitter.notify("bob", NotificationKind.new_message, {"connection_id": 1})
    emitter.notify("alice", NotificationKind.new_message, {"connection_id": 1})

    mine = list_notifications(db, "bob", clock.now())
    assert len(mine) == 2

    ids = [n.id for n in mine]
    assert mark_notifications_read(db, "alice", ids, clock.now()) == 0
    assert mark_notifications_read(db, "bob", ids, clock.now()) == 2
    assert mark_notifications_read(db, "bob", ids, clock.now()) == 0

    assert list_notifications(db, "bob", clock.now(), unread_only=True) == []


def test_expired_notifications_are_hidden(db, emitter, clock):
    emitter.notify("bob", NotificationKind.new_message, {"connection_id": 1})

    assert list_notifications(db, "bob", T0 + timedelta(days=29))
    assert list_notifications(db, "bob", T0 + timedelta(days=30)) == []


def test_register_push_token_validates_and_dedupes(db):
    with pytest.raises(InvalidInput):
        register_push_token(db, "bob", "not-a-token")

    register_push_token(db, "bob", TOKEN, "ios")
    register_push_token(db, "bob", TOKEN, "android")

    rows = db.query(PushToken).filter_by(user_id="bob").all()
    assert len(rows) == 1
    assert rows[0].platform == "android"
