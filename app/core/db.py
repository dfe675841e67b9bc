from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError, TimeoutError as PoolTimeout
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from loguru import logger

from app.core.config import DATABASE_URL
from app.core.errors import Unavailable

# --- Base (single source of truth) ---
Base = declarative_base()


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}

    kwargs = {"connect_args": {"check_same_thread": False}}
    # in-memory sqlite lives and dies with its connection
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


# --- Engine ---
engine = create_engine(
    DATABASE_URL,
    echo=False,
    future=True,
    **_engine_kwargs(DATABASE_URL),
)

# --- Session factory ---
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)

# --- SQL query logging ---
@event.listens_for(engine, "before_cursor_execute")
def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    logger.trace(f"SQL: {statement} | params={parameters}")

# --- FastAPI dependency ---
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# --- Store boundary ---
@contextmanager
def store_errors(db: Session, op: str):
    """
    Surface connectivity/driver failures as Unavailable. Whatever the
    session had pending is rolled back, so the caller may retry.
    """
    try:
        yield
    except (DBAPIError, PoolTimeout) as e:
        db.rollback()
        logger.error(f"Store failure during {op}: {e}")
        raise Unavailable(f"Storage unavailable during {op}") from e
