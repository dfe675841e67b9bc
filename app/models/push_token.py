from sqlalchemy import Column, String, DateTime, Text, UniqueConstraint
from sqlalchemy.sql import func

from app.core.db import Base


class PushToken(Base):
    __tablename__ = "push_token"

    id = Column(String, primary_key=True)
    user_id = Column(String, index=True, nullable=False)
    expo_push_token = Column(Text, nullable=False)
    platform = Column(String, nullable=True)

    updated_at = Column(DateTime(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "expo_push_token", name="uq_push_token_user_token"),
    )
