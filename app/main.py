from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from loguru import logger

from app.core.logging import setup_logging
from app.core.init_db import init_db
from app.core.errors import register_error_handlers
from app.api.router import api_router

setup_logging()
logger.info("Starting Spark backend")


app = FastAPI(
    title="Spark Backend",
    version="0.1.0"
)

register_error_handlers(app)

# All /v1 routes: users, connections, messages, rooms, notifications, relay
app.include_router(api_router)

# Init DB after app is created
init_db()

@app.get("/health")
def health():
    logger.debug("Health check hit")
    return {"status": "ok"}
