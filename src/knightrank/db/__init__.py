"""
Database module for knightrank.

Provides SQLAlchemy ORM models and session management.

Usage:
    from knightrank.db import get_session, Player, Match

    with get_session() as session:
        players = session.query(Player).all()
"""

from knightrank.db.models import (
    Base,
    DecayRun,
    Match,
    Player,
    RatingHistory,
    UpdateLog,
)
from knightrank.db.session import SessionLocal, get_engine, get_session, session_scope

__all__ = [
    # Base
    "Base",
    # Models
    "Player",
    "Match",
    "RatingHistory",
    "DecayRun",
    "UpdateLog",
    # Session
    "get_session",
    "get_engine",
    "session_scope",
    "SessionLocal",
]
