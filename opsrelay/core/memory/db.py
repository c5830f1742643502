"""
Database connection and session management.

Handles SQLite database initialization and the session factory.

Sessions are single-owner: create them with `db_session()` in the thread that
runs the queries (the signaling core does this inside the default executor).
"""
import logging
import threading
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import NullPool

from opsrelay.core.config import get_database_url, settings
from opsrelay.core.memory.models import Base


logger = logging.getLogger(__name__)


# NullPool: new connection per session, never shared across threads.
engine = create_engine(
    get_database_url(),
    connect_args={
        "timeout": 30,
        "check_same_thread": False,
    },
    poolclass=NullPool,
    echo=settings.database_echo,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Only one thread initializes the schema at a time.
_init_lock = threading.Lock()


def init_db() -> None:
    """Initialize database schema (create tables)."""
    with _init_lock:
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database schema initialized")
        except Exception as e:
            logger.error("Failed to initialize database: %s", e, exc_info=True)
            raise


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Use only in the thread that calls this; do not pass the yielded session
    or its ORM objects to another thread.
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


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints and WAL mode in SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()
