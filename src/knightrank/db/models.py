"""
SQLAlchemy ORM models for knightrank.

The schema stores the ladder's current state plus two append-only logs
from which every rating can be reconstructed.

Key design decisions:
- Players carry their current rating and record (one row per player)
- Player rows have an optimistic-concurrency version counter, so a write
  based on a stale read fails instead of silently losing an update
- Matches are immutable once written; decay and activity-bonus events are
  stored as matches against a sentinel opponent (player_b_id is NULL)
- Rating history has one row per rating change per player, used for
  rating-over-time charts and for replay validation
- Decay runs are recorded so a period is never processed twice

Tables:
- players: Current ladder state
- matches: All rated events (player matches, decay, activity bonus)
- rating_history: Append-only rating series per player
- decay_runs: One row per applied decay run
- update_log: System audit trail
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from knightrank.elo.constants import STARTING_RATING
from knightrank.elo.state import PlayerRatingState, as_utc
from knightrank.match_outcomes import ALL_OUTCOMES


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (how all timestamps are stored)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_db_time(moment: datetime) -> datetime:
    """Convert any datetime to the naive UTC form stored in the database."""
    return as_utc(moment).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Player Models
# =============================================================================

class Player(Base):
    """
    A ladder member and their current rating.

    Only the match service (match outcomes) and the decay service (decay
    and activity bonus) write ``current_rating``.
    """
    __tablename__ = "players"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    current_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=STARTING_RATING)

    # Record (wins + losses + draws == matches_played)
    matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    draws: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Last match played; NULL until the first match
    last_active_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Optimistic concurrency counter, bumped on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    history: Mapped[list["RatingHistory"]] = relationship(back_populates="player")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "wins + losses + draws = matches_played",
            name="ck_players_record_consistent",
        ),
        Index("idx_players_rating", "current_rating"),
    )

    def to_state(self) -> PlayerRatingState:
        """Snapshot this row for the rating engine."""
        return PlayerRatingState(
            player_id=self.id,
            current_rating=self.current_rating,
            matches_played=self.matches_played,
            wins=self.wins,
            losses=self.losses,
            draws=self.draws,
            last_active_at=self.last_active_at,
        )

    @property
    def win_rate(self) -> float:
        if not self.matches_played:
            return 0.0
        return self.wins / self.matches_played

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name='{self.name}', rating={self.current_rating})>"


# =============================================================================
# Match Models
# =============================================================================

class Match(Base):
    """
    An immutable rated event.

    winner values:
    - 'A', 'B', 'DRAW': a game between two players
    - 'DECAY', 'ACTIVITY_BONUS': a system event; player_b_id is NULL and the
      B ratings are 0
    """
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)

    player_a_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    player_b_id: Mapped[Optional[int]] = mapped_column(ForeignKey("players.id"), nullable=True)

    winner: Mapped[str] = mapped_column(String(20), nullable=False)

    rating_a_before: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_b_before: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_a_after: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_b_after: Mapped[int] = mapped_column(Integer, nullable=False)

    played_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    # Set for DECAY / ACTIVITY_BONUS events written by a decay run
    decay_run_id: Mapped[Optional[int]] = mapped_column(ForeignKey("decay_runs.id"), nullable=True)

    player_a: Mapped["Player"] = relationship(foreign_keys=[player_a_id])
    player_b: Mapped[Optional["Player"]] = relationship(foreign_keys=[player_b_id])

    __table_args__ = (
        Index("idx_matches_played_at", "played_at"),
        Index("idx_matches_player_a", "player_a_id", "played_at"),
        Index("idx_matches_player_b", "player_b_id", "played_at"),
        CheckConstraint(
            "winner IN (" + ", ".join(f"'{o}'" for o in ALL_OUTCOMES) + ")",
            name="ck_matches_winner",
        ),
    )

    @property
    def delta_a(self) -> int:
        return self.rating_a_after - self.rating_a_before

    @property
    def delta_b(self) -> int:
        return self.rating_b_after - self.rating_b_before

    def __repr__(self) -> str:
        return (
            f"<Match(id={self.id}, a={self.player_a_id}, b={self.player_b_id}, "
            f"winner='{self.winner}')>"
        )


class RatingHistory(Base):
    """
    One rating change for one player.

    Append-only. ``match_id`` links the event that caused the change;
    ``event_key`` carries the DECAY-<ms> / ACTIVITY_BONUS-<ms> identifier of
    system events (legacy entries may have an event_key but no match row,
    see knightrank.services.audit.backfill_system_matches).
    """
    __tablename__ = "rating_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    match_id: Mapped[Optional[int]] = mapped_column(ForeignKey("matches.id"), nullable=True)
    event_key: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    player: Mapped["Player"] = relationship(back_populates="history")

    __table_args__ = (
        Index("idx_rating_history_player_time", "player_id", "recorded_at"),
        Index("idx_rating_history_event_key", "event_key"),
    )

    def __repr__(self) -> str:
        return f"<RatingHistory(player_id={self.player_id}, rating={self.rating})>"


# =============================================================================
# Operations Models
# =============================================================================

class DecayRun(Base):
    """
    Record of one applied decay run.

    ``period_key`` (e.g. '2026-W42') is unique, so a scheduler that fires
    twice for the same period cannot decay the ladder twice.
    """
    __tablename__ = "decay_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    period_key: Mapped[Optional[str]] = mapped_column(String(40), nullable=True, unique=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    floor_used: Mapped[int] = mapped_column(Integer, nullable=False)
    total_decay: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bonus_per_player: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    players_decayed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    players_bonused: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    players_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # 'running', 'success', 'partial', 'paused'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="running")
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_decay_runs_started_at", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<DecayRun(id={self.id}, period='{self.period_key}', status='{self.status}')>"


class UpdateLog(Base):
    """
    Audit log for maintenance operations.

    Records when ratings are verified against the match log or history is
    backfilled, for debugging and monitoring.
    """
    __tablename__ = "update_log"

    id: Mapped[int] = mapped_column(primary_key=True)

    update_type: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_update_log_type_date", "update_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<UpdateLog(type='{self.update_type}', success={self.success})>"
