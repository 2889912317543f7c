"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import datetime

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from knightrank.db.models import Base, Player
from knightrank.db.session import session_scope


@pytest.fixture
def now():
    """Fixed reference time (naive UTC, as stored)."""
    return datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def test_engine():
    """
    Create a test database engine.

    SQLite in-memory with a single shared connection, so every session a
    service opens sees the same database. Each test gets a fresh one.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory handed to the services (mirrors SessionLocal)."""
    return sessionmaker(bind=test_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    """
    A plain session for tests that work inside one transaction.

    Rolled back at the end so nothing leaks between tests.
    """
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def make_player(session_factory):
    """
    Factory fixture that commits a player row and returns it.

    Usage:
        player = make_player("Ana", rating=1500, last_active_at=now)
    """
    counter = {"n": 0}

    def _make(name=None, rating=1200, last_active_at=None):
        counter["n"] += 1
        with session_scope(session_factory) as session:
            player = Player(
                name=name or f"player-{counter['n']}",
                current_rating=rating,
                last_active_at=last_active_at,
            )
            session.add(player)
            session.flush()
        return player

    return _make
