"""
Database session management for knightrank.

Provides SQLAlchemy engine and session factory configured from
config.py. Services take a session factory as an argument, so tests can
pass their own; scripts use the module-level ``SessionLocal``.

Usage:
    # One transaction in a script
    from knightrank.db import get_session
    from knightrank.services.players import leaderboard

    with get_session() as session:
        standings = leaderboard(session)
        # Committed on exit, rolled back on exception

    # Handing the factory to a service
    from knightrank.db import SessionLocal
    from knightrank.services.matches import record_match

    record_match(SessionLocal, player_a_id=1, player_b_id=2, winner="A")
"""

from contextlib import contextmanager
from typing import Callable, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from knightrank.config import settings

SessionFactory = Callable[[], Session]


def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create SQLAlchemy engine.

    Server databases get a sized pool with pre-ping; SQLite keeps its
    default pool and gets foreign key enforcement. SQL is echoed when
    log_level is DEBUG.
    """
    url = database_url or settings.database_url
    echo = settings.log_level == "DEBUG"

    if url.startswith("sqlite"):
        engine = create_engine(url, echo=echo)

        @event.listens_for(engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            """SQLite ships with foreign keys off."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=echo,
    )


# Created lazily on first use
_engine = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


# Session factory used by the scripts; services take any factory
SessionLocal = sessionmaker(
    autoflush=False,  # Don't auto-flush before queries (more control)
    expire_on_commit=False,  # Results stay readable after the transaction
    bind=_get_engine(),
)


@contextmanager
def session_scope(session_factory: SessionFactory) -> Generator[Session, None, None]:
    """
    One transaction on a fresh session from ``session_factory``.

    Commits on successful exit, rolls back on exception, always closes.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """session_scope() on the application SessionLocal, for scripts."""
    with session_scope(SessionLocal) as session:
        yield session
