"""
Database session management.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from rideshare.core.config import Settings
from rideshare.core.exceptions import DataAccessError
from rideshare.core.live import LiveQueryHub
from rideshare.db.base import Base

logger = logging.getLogger(__name__)

TOUCHED_KEY = "touched_topics"


def create_db_engine(settings: Settings) -> Engine:
    """Create the engine; SQLite gets a busy timeout and enforced foreign keys."""
    connect_args = {}
    is_sqlite = settings.DATABASE_URL.startswith("sqlite")
    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": settings.DB_BUSY_TIMEOUT}

    engine = create_engine(
        settings.DATABASE_URL,
        echo=settings.DB_ECHO,
        pool_pre_ping=True,
        connect_args=connect_args,
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    # Objects stay readable after their unit of work closes
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine):
    """Initialize database tables."""
    # Import models so SQLAlchemy registers them
    import rideshare.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def touch(db: Session, *topics: str) -> None:
    """Record that this unit of work changed `topics` (table names)."""
    db.info.setdefault(TOUCHED_KEY, set()).update(topics)


@contextmanager
def session_scope(session_factory: sessionmaker, hub: Optional[LiveQueryHub] = None) -> Iterator[Session]:
    """
    One unit of work: commit on success, roll back on any error, always close.

    Store failures are logged and re-raised as DataAccessError. After a
    successful commit the touched topics are published to `hub`.
    """
    db = session_factory()
    try:
        yield db
        db.commit()
        touched = db.info.pop(TOUCHED_KEY, set())
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database operation failed")
        raise DataAccessError(f"Database operation failed: {exc.__class__.__name__}") from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    if hub is not None and touched:
        hub.publish(*touched)
