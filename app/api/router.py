from fastapi import APIRouter

from app.modules.users.routes import router as users_router
from app.modules.connections.routes import router as connections_router
from app.modules.messages.routes import router as messages_router
from app.modules.rooms.routes import router as rooms_router
from app.modules.notifications.router import router as notifications_router
from app.modules.relay.router import router as relay_router

api_router = APIRouter(prefix="/v1")

api_router.include_router(users_router)
api_router.include_router(connections_router)
api_router.include_router(messages_router)
api_router.include_router(rooms_router)
api_router.include_router(notifications_router)
api_router.include_router(relay_router)
