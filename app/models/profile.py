from sqlalchemy import Column, String, Integer, DateTime, func
from app.core.db import Base


class Profile(Base):
    __tablename__ = "profile"

    user_id = Column(String, primary_key=True)

    name = Column(String, nullable=False)
    age = Column(Integer, nullable=True)
    bio = Column(String, nullable=True)
    city = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)

    last_active = Column(DateTime, nullable=True)

    updated_at = Column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
