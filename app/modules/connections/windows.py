"""
Time windows of a connection.

Both predicates take `now` explicitly and read only raw timestamps, so
they stay correct however stale the stored status is.
"""
from datetime import datetime, timedelta
from typing import Optional

from app.modules.connections.models import Connection
from app.schemas.enums import ConnectionStatus


def request_has_expired(connection: Connection, now: datetime) -> bool:
    # on a tie, expiry wins
    return connection.request_expires_at is not None and now >= connection.request_expires_at


def is_chat_open(connection: Connection, now: datetime) -> bool:
    return (
        connection.status == ConnectionStatus.accepted.value
        and connection.chat_expires_at is not None
        and connection.chat_expires_at > now
    )


def time_remaining(connection: Connection, now: datetime) -> Optional[timedelta]:
    """Display only. None when no chat window was ever opened."""
    if connection.chat_expires_at is None:
        return None
    return max(timedelta(0), connection.chat_expires_at - now)


def seconds_remaining(connection: Connection, now: datetime) -> Optional[int]:
    remaining = time_remaining(connection, now)
    if remaining is None:
        return None
    return int(remaining.total_seconds())


def format_time_left(remaining: Optional[timedelta]) -> str:
    if not remaining:
        return "Expired"

    total_minutes = int(remaining.total_seconds()) // 60
    hours, minutes = divmod(total_minutes, 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return "Expired"
