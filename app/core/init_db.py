from loguru import logger
from app.core.db import engine, Base

# Import all models so SQLAlchemy registers them
from app.models.profile import Profile
from app.models.push_token import PushToken
from app.modules.connections.models import Connection
from app.modules.messages.models import Message
from app.modules.rooms.models import Room
from app.modules.notifications.models import Notification

def init_db(bind=None):
    logger.info("Creating database tables")
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables created")
