from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, CheckConstraint, Index
from sqlalchemy.sql import func
from app.core.db import Base


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False)
    room_type = Column(String, nullable=False)  # discussion | event | meetup | hobby
    tags = Column(JSON, nullable=False, default=list)

    created_by = Column(String, nullable=False, index=True)

    # join order; creator first
    participant_ids = Column(JSON, nullable=False, default=list)
    max_participants = Column(Integer, nullable=False, default=5)

    is_private = Column(Boolean, nullable=False, default=False)
    subscription_required = Column(Boolean, nullable=False, default=True)

    # null => always live
    scheduled_for = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=False, default=60)  # minutes

    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("max_participants BETWEEN 2 AND 10", name="rooms_capacity_bounds"),
        Index("idx_rooms_type_active", "room_type", "is_active"),
        Index("idx_rooms_scheduled_for", "scheduled_for"),
    )
