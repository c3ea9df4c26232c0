# app/db/session.py
# Database session management
#
# Local dev / production → PostgreSQL via DATABASE_URL
# Tests                  → sqlite:// (single shared in-memory connection)
#
# FastAPI endpoints get a session via: Depends(get_db)

import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.exceptions import TransportError

log = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    """Pool options per backend; SQLite ignores pooling and must share one connection."""
    if database_url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 1800,  # Recycle connections every 30 min
    }


# ── Engine ────────────────────────────────────────────────────────────────────
engine = create_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)

# ── Session Factory ───────────────────────────────────────────────────────────
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Prevents lazy load errors after commit
)


# ── FastAPI Dependency ────────────────────────────────────────────────────────
def get_db() -> Generator[Session, None, None]:
    """
    Dependency injected into every FastAPI endpoint that needs DB access.

    Usage:
        @router.get("/example")
        def example(db: Session = Depends(get_db)):
            ...

    Guarantees the session is always closed, even on exceptions.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ── Store Error Translation ───────────────────────────────────────────────────
@contextmanager
def store_call(db: Session, action: str) -> Iterator[None]:
    """
    Wrap a block of store calls so driver failures surface as TransportError.

    The session is rolled back so the caller can keep using it.
    Domain errors raised inside the block pass through untouched.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        log.error("Store call failed during %s: %s", action, exc)
        raise TransportError(f"Could not {action}. Please try again.") from exc


# ── Health Check Helper ───────────────────────────────────────────────────────
def check_db_connection() -> bool:
    """
    Used by /health endpoint to verify DB connectivity.
    Returns True if connected, False otherwise.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False
