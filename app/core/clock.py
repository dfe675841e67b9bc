from datetime import datetime, timedelta, timezone
from typing import Protocol


def utcnow() -> datetime:
    """Naive UTC, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return utcnow()


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, at: datetime | None = None):
        self._now = at or utcnow()

    def now(self) -> datetime:
        return self._now

    def set(self, at: datetime) -> None:
        self._now = at

    def advance(self, delta: timedelta | None = None, **kwargs) -> datetime:
        self._now = self._now + (delta or timedelta(**kwargs))
        return self._now


_system_clock = SystemClock()


# --- FastAPI dependency ---
def get_clock() -> Clock:
    return _system_clock


def to_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
