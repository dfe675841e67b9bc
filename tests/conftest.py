"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, rebuilt for every test
- FrozenClock pinned to T0 (advance it to move time)
- RecordingNotifier in place of the real emitter
- TestClient with db/clock/notifier overridden and JWT minting
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FILE"] = ""
os.environ["LOG_LEVEL"] = "INFO"
os.environ["EXPO_PUSH_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"

from datetime import datetime
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import Session

from app.core.auth import AuthUser
from app.core.clock import FrozenClock, get_clock
from app.core.db import Base, SessionLocal, engine, get_db
from app.core.init_db import init_db
from app.models.profile import Profile
from app.modules.notifications.emitter import get_notifier


T0 = datetime(2026, 3, 1, 12, 0, 0)


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, user_id, kind, payload):
        self.sent.append((user_id, kind.value if hasattr(kind, "value") else kind, payload))

    def kinds_for(self, user_id):
        return [k for u, k, _ in self.sent if u == user_id]


# =============================================================================
# Core fixtures
# =============================================================================

@pytest.fixture
def db() -> Generator[Session, None, None]:
    init_db()
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def users(db: Session):
    """alice, bob, carol and dave, with profiles."""
    for user_id, name in [("alice", "Alice"), ("bob", "Bob"), ("carol", "Carol"), ("dave", "Dave")]:
        db.add(Profile(user_id=user_id, name=name, age=30, city="Lisbon"))
    db.commit()
    return ["alice", "bob", "carol", "dave"]


@pytest.fixture
def premium():
    def _premium(user_id: str) -> AuthUser:
        return AuthUser(user_id=user_id, is_premium=True)
    return _premium


# =============================================================================
# HTTP fixtures
# =============================================================================

def make_token(user_id: str, is_premium: bool = False) -> str:
    return jwt.encode({"sub": user_id, "is_premium": is_premium}, "test-secret", algorithm="HS256")


@pytest.fixture
def auth():
    def _auth(user_id: str, is_premium: bool = False) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, is_premium)}"}
    return _auth


@pytest.fixture
def token():
    return make_token


@pytest.fixture
def client(db, clock, notifier) -> Generator[TestClient, None, None]:
    from app.main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
