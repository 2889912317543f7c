"""Player management and read-side queries."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from knightrank.db.models import Match, Player, RatingHistory, utcnow
from knightrank.elo.params import RatingParams
from knightrank.elo.state import PlayerRatingState
from knightrank.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


def add_player(
    session: Session,
    name: str,
    params: Optional[RatingParams] = None,
) -> Player:
    """
    Create a player at the starting rating.

    Raises:
        ValidationError: blank, over-long or already-taken name
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Player name is required")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Player name must be at most {MAX_NAME_LENGTH} characters")

    existing = session.scalar(select(Player).where(Player.name == name))
    if existing is not None:
        raise ValidationError(f"A player named '{name}' already exists")

    params = params or RatingParams.from_settings()
    player = Player(name=name, current_rating=params.starting_rating)
    session.add(player)
    session.flush()

    logger.info("Added player %s (id=%d) at %d", name, player.id, player.current_rating)
    return player


def get_player(session: Session, player_id: int) -> Player:
    player = session.get(Player, player_id)
    if player is None:
        raise NotFoundError(f"Player {player_id!r} not found", player_id=player_id)
    return player


def load_snapshot(
    session: Session,
    player_ids: Optional[Iterable[int]] = None,
    for_update: bool = False,
) -> dict[int, PlayerRatingState]:
    """
    Read player rows as engine states, keyed by id.

    Args:
        player_ids: Restrict to these players (None = everyone)
        for_update: Lock the rows for the rest of the transaction. Rows are
                    locked in id order so two transactions touching the same
                    players cannot deadlock.
    """
    stmt = select(Player).order_by(Player.id)
    if player_ids is not None:
        stmt = stmt.where(Player.id.in_(list(player_ids)))
    if for_update:
        stmt = stmt.with_for_update()
    return {player.id: player.to_state() for player in session.scalars(stmt)}


def leaderboard(session: Session) -> list[Player]:
    """All players, highest rating first (ties by name)."""
    stmt = select(Player).order_by(Player.current_rating.desc(), Player.name.asc())
    return list(session.scalars(stmt))


def rating_series(session: Session, player_id: int) -> list[tuple[datetime, int]]:
    """
    Rating over time for one player, oldest first.

    The series starts with the rating the player was created at, so a
    player with no matches still has one point.
    """
    player = get_player(session, player_id)

    stmt = (
        select(RatingHistory.recorded_at, RatingHistory.rating)
        .where(RatingHistory.player_id == player_id)
        .order_by(RatingHistory.recorded_at.asc(), RatingHistory.id.asc())
    )
    entries = [(row.recorded_at, row.rating) for row in session.execute(stmt)]

    first_rating = _starting_rating_of(session, player) if entries else player.current_rating
    created_at = player.created_at or utcnow()
    return [(created_at, first_rating), *entries]


def _starting_rating_of(session: Session, player: Player) -> int:
    """Rating the player held before their first history entry."""
    first_match = session.scalar(
        select(Match)
        .where((Match.player_a_id == player.id) | (Match.player_b_id == player.id))
        .order_by(Match.played_at.asc(), Match.id.asc())
        .limit(1)
    )
    if first_match is None:
        return player.current_rating
    if first_match.player_a_id == player.id:
        return first_match.rating_a_before
    return first_match.rating_b_before


def recent_matches(session: Session, limit: Optional[int] = None) -> list[Match]:
    """
    The match log, newest first.

    Includes DECAY and ACTIVITY_BONUS events; their ``player_b`` is None.
    Both players are loaded with the matches so callers can show names
    without extra queries.
    """
    stmt = (
        select(Match)
        .options(joinedload(Match.player_a), joinedload(Match.player_b))
        .order_by(Match.played_at.desc(), Match.id.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt))


def player_matches(
    session: Session,
    player_id: int,
    limit: Optional[int] = None,
) -> list[Match]:
    """
    Every match a player took part in, as A or B, newest first.

    Raises:
        NotFoundError: unknown player
    """
    get_player(session, player_id)

    stmt = (
        select(Match)
        .options(joinedload(Match.player_a), joinedload(Match.player_b))
        .where((Match.player_a_id == player_id) | (Match.player_b_id == player_id))
        .order_by(Match.played_at.desc(), Match.id.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt))
