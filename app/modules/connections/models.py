from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint, UniqueConstraint, Index
from sqlalchemy.sql import func
from app.core.db import Base


class Connection(Base):
    __tablename__ = "connections"

    id = Column(Integer, primary_key=True, index=True)
    requester_id = Column(String, nullable=False, index=True)
    receiver_id = Column(String, nullable=False, index=True)

    # lexicographically ordered pair; one connection per unordered pair
    user_low = Column(String, nullable=False)
    user_high = Column(String, nullable=False)

    status = Column(
        String,
        CheckConstraint(
            "status IN ('pending','accepted','rejected','expired')",
            name="connections_status_check",
        ),
        nullable=False,
        default="pending",
    )
    message = Column(String(300), nullable=False, default="")

    requested_at = Column(DateTime, nullable=False)
    request_expires_at = Column(DateTime, nullable=False)
    responded_at = Column(DateTime, nullable=True)
    chat_expires_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_low", "user_high", name="uq_connections_pair"),
        CheckConstraint("requester_id <> receiver_id", name="connections_not_self"),
        Index("idx_connections_receiver_status", "receiver_id", "status"),
        Index("idx_connections_requester_status", "requester_id", "status"),
        Index("idx_connections_request_expires", "request_expires_at"),
        Index("idx_connections_chat_expires", "chat_expires_at"),
    )

    def endpoints(self) -> tuple[str, str]:
        return self.requester_id, self.receiver_id

    def other_endpoint(self, user_id: str) -> str:
        return self.receiver_id if user_id == self.requester_id else self.requester_id
