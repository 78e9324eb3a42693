"""
Database session management for courtrank.

Provides the SQLAlchemy engine and session factory with connection pooling
configured from config.py.

Usage:
    from courtrank.db import get_session

    with get_session() as session:
        locks = SeasonLockService(session)
        locks.lock_season(season_id=3, admin_id=1)
        # Commits automatically on exit, rolls back on exception
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from courtrank.config import settings


def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    The engine is configured with:
    - Connection pool for efficient reuse
    - Echo mode only when LOG_LEVEL=DEBUG
    - Pre-ping to verify connections before use (handles stale connections)
    """
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        # SQLite pools don't take size arguments
        return create_engine(url, echo=settings.log_level == "DEBUG")

    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=settings.log_level == "DEBUG",
    )


_engine: Optional[Engine] = None


def _get_engine() -> Engine:
    """Get or create the process engine. Created lazily on first session."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


# Session factory - bound lazily so importing this module never connects
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.
    This is the recommended way to use sessions in scripts.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = SessionLocal(bind=_get_engine())
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
