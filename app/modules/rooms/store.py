from typing import List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.orm import Session

from app.modules.rooms.models import Room


class RoomStore:
    """Room persistence; writes are conditional on the version read."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, room_id: int) -> Optional[Room]:
        return self.db.get(Room, room_id, populate_existing=True)

    def active(self, room_type: Optional[str] = None) -> List[Room]:
        filters = [Room.is_active.is_(True)]
        if room_type:
            filters.append(Room.room_type == room_type)
        rows = self.db.execute(
            select(Room).where(*filters).order_by(Room.created_at.desc(), Room.id.desc())
        ).scalars().all()
        return list(rows)

    def insert(self, room: Room) -> Room:
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        return room

    def update_if_version(self, room: Room, **values) -> bool:
        result = self.db.execute(
            update(Room)
            .where(and_(Room.id == room.id, Room.version == room.version))
            .values(version=Room.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            return False

        self.db.commit()
        self.db.refresh(room)
        return True
