from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.sql import func
from app.core.db import Base


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    connection_id = Column(Integer, ForeignKey("connections.id"), nullable=False)

    sender_id = Column(String, nullable=False)
    receiver_id = Column(String, nullable=False)

    content = Column(String(1000), nullable=False)
    is_media = Column(Boolean, nullable=False, default=False)
    media_url = Column(String, nullable=True)
    media_type = Column(String, nullable=True)  # image | video | audio | file

    # strictly increasing within a connection
    timestamp = Column(DateTime, nullable=False)

    # soft delete; kept for audit
    is_deleted = Column(Boolean, nullable=False, default=False)

    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("connection_id", "timestamp", name="uq_messages_connection_ts"),
        Index("idx_messages_receiver_read", "receiver_id", "is_read"),
    )
