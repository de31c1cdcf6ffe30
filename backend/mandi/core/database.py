"""
Database utilities and connection management.

WHAT: Engine, session factory and lifecycle helpers for the marketplace tables
WHY: Negotiations are written from REST handlers and socket handlers at once;
     SQLite needs WAL plus a busy timeout to let those writers queue
HOW: SQLAlchemy sync engine, connect-time pragmas, get_db() unit of work
"""

from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

# Milliseconds a writer waits on a locked database before failing
SQLITE_BUSY_TIMEOUT_MS = 5000

if settings.DATABASE_URL.startswith("sqlite:///"):
    Path(settings.DATABASE_URL.replace("sqlite:///", "")).parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(
    settings.DATABASE_URL,
    # Socket handlers reach the DB from threadpool workers
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    echo=settings.DEBUG,
)


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """WAL for concurrent readers, FK enforcement, and a busy timeout for writers."""
    if not _is_sqlite:
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    cursor.close()


SessionLocal = sessionmaker(
    bind=engine,
    # Serializers run after commit in several services
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


@contextmanager
def get_db():
    """
    Unit of work: commit on success, roll back on any exception.

    Usage:
        with get_db() as db:
            negotiation = db.get(Negotiation, negotiation_id)

    StaleDataError from a version mismatch surfaces from the commit, so
    callers that map it must wrap the whole with-block.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def ping_database() -> dict:
    """
    Check database connectivity and schema presence.

    Returns:
        Dict with "available", "error" and "tables" (marketplace tables found)
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            tables = sorted(inspect(conn).get_table_names())

        return {"available": True, "error": None, "tables": tables}
    except Exception as e:
        logger.error(f"Database ping failed: {e}")
        return {"available": False, "error": str(e), "tables": []}


def init_db():
    """Create any missing tables."""
    # Import models so they register on Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized ({engine.url.get_backend_name()})")


def reset_db():
    """Drop and recreate every table. Used by tests and local resets."""
    from . import models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    logger.warning("Database reset: all marketplace tables recreated")


def close_db():
    """Dispose pooled connections."""
    engine.dispose()
    logger.info("Database connections closed")
