from datetime import datetime, timedelta
from typing import Optional

from app.core.lifecycle_config import DEFAULT_ROOM_DURATION_MINUTES
from app.schemas.enums import RoomStatus


def room_ends_at(scheduled_for: Optional[datetime], duration: Optional[int]) -> Optional[datetime]:
    if scheduled_for is None:
        return None
    return scheduled_for + timedelta(minutes=duration or DEFAULT_ROOM_DURATION_MINUTES)


def room_status(scheduled_for: Optional[datetime], duration: Optional[int], now: datetime) -> RoomStatus:
    """
    Derived on every read, never stored. An unscheduled room is live
    forever; a scheduled one is live on [start, start + duration).
    """
    if scheduled_for is None:
        return RoomStatus.live
    if now < scheduled_for:
        return RoomStatus.upcoming
    if now < room_ends_at(scheduled_for, duration):
        return RoomStatus.live
    return RoomStatus.ended
