"""
Match service: records one match atomically.

Flow for one submission:
1. Validate ids and winner (no database access; errors surface immediately)
2. In one transaction:
   - lock both player rows in id order (SELECT ... FOR UPDATE)
   - snapshot them and let MatchRecorder compute the outcome
   - write both players, the match record and two rating history entries
3. If a concurrent write invalidated the read (version mismatch, lock
   timeout, serialization failure) roll back and retry the whole
   read-compute-write cycle, up to ``settings.match_max_retries`` attempts

Ratings are always computed here from stored state; callers never supply
them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from knightrank.config import settings
from knightrank.db.models import Match, Player, RatingHistory, to_db_time, utcnow
from knightrank.db.session import SessionFactory, session_scope
from knightrank.elo.params import RatingParams
from knightrank.elo.recorder import MatchRecorder, PlayerUpdate, RecordedMatch
from knightrank.errors import ConcurrencyConflict
from knightrank.services.players import load_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchReceipt:
    """What the caller gets back after a match was committed."""
    match_id: int
    player_a_id: int
    player_b_id: int
    player_a_name: str
    player_b_name: str
    winner: str
    rating_a_before: int
    rating_b_before: int
    rating_a_after: int
    rating_b_after: int
    played_at: datetime
    attempts: int = 1

    @property
    def delta_a(self) -> int:
        return self.rating_a_after - self.rating_a_before

    @property
    def delta_b(self) -> int:
        return self.rating_b_after - self.rating_b_before

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "player_a_id": self.player_a_id,
            "player_b_id": self.player_b_id,
            "player_a_name": self.player_a_name,
            "player_b_name": self.player_b_name,
            "winner": self.winner,
            "rating_a_before": self.rating_a_before,
            "rating_b_before": self.rating_b_before,
            "rating_a_after": self.rating_a_after,
            "rating_b_after": self.rating_b_after,
            "delta_a": self.delta_a,
            "delta_b": self.delta_b,
            "played_at": self.played_at.isoformat(),
        }


def record_match(
    session_factory: SessionFactory,
    player_a_id: int,
    player_b_id: int,
    winner: str,
    now: Optional[datetime] = None,
    max_retries: Optional[int] = None,
    params: Optional[RatingParams] = None,
) -> MatchReceipt:
    """
    Record a match and update both players.

    Args:
        session_factory: Callable returning a new Session (e.g. SessionLocal)
        player_a_id: Player A
        player_b_id: Player B
        winner: 'A', 'B' or 'DRAW'
        now: Match time (defaults to the current UTC time)
        max_retries: Attempts on concurrency conflicts
                     (default settings.match_max_retries)
        params: Optional rating parameter overrides

    Returns:
        MatchReceipt for the committed match

    Raises:
        ValidationError: Invalid submission (never retried)
        NotFoundError: A player does not exist (never retried)
        ConcurrencyConflict: Still conflicting after the last attempt
    """
    recorder = MatchRecorder(params or RatingParams.from_settings())
    winner = recorder.validate(player_a_id, player_b_id, winner)
    played_at = to_db_time(now) if now is not None else utcnow()
    attempts_allowed = max_retries if max_retries is not None else settings.match_max_retries

    attempt = 0
    while True:
        attempt += 1
        try:
            receipt = _record_once(
                session_factory, recorder, player_a_id, player_b_id, winner, played_at,
            )
        except ConcurrencyConflict as exc:
            if attempt >= attempts_allowed:
                logger.error(
                    "Match %s vs %s failed after %d attempts: %s",
                    player_a_id, player_b_id, attempt, exc,
                )
                raise
            logger.warning(
                "Concurrent update on match %s vs %s (attempt %d/%d), retrying",
                player_a_id, player_b_id, attempt, attempts_allowed,
            )
            continue

        logger.info(
            "Recorded match %d: %s vs %s winner=%s (%+d / %+d)",
            receipt.match_id, receipt.player_a_name, receipt.player_b_name,
            receipt.winner, receipt.delta_a, receipt.delta_b,
        )
        if attempt > 1:
            receipt = replace(receipt, attempts=attempt)
        return receipt


def _record_once(
    session_factory: SessionFactory,
    recorder: MatchRecorder,
    player_a_id: int,
    player_b_id: int,
    winner: str,
    played_at: datetime,
) -> MatchReceipt:
    """One read-compute-write transaction. Conflicts surface as ConcurrencyConflict."""
    try:
        with session_scope(session_factory) as session:
            return _apply_match(session, recorder, player_a_id, player_b_id, winner, played_at)
    except StaleDataError as exc:
        raise ConcurrencyConflict(f"Player row changed during match transaction: {exc}") from exc
    except OperationalError as exc:
        raise ConcurrencyConflict(f"Match transaction could not be committed: {exc}") from exc


def _apply_match(
    session: Session,
    recorder: MatchRecorder,
    player_a_id: int,
    player_b_id: int,
    winner: str,
    played_at: datetime,
) -> MatchReceipt:
    snapshot = load_snapshot(session, [player_a_id, player_b_id], for_update=True)
    recorded = recorder.record(snapshot, player_a_id, player_b_id, winner, played_at=played_at)

    player_a = session.get(Player, player_a_id)
    player_b = session.get(Player, player_b_id)
    _apply_update(player_a, recorded.player_a)
    _apply_update(player_b, recorded.player_b)

    match = _match_row(recorded, played_at)
    session.add(match)
    session.flush()

    for update in (recorded.player_a, recorded.player_b):
        session.add(
            RatingHistory(
                player_id=update.player_id,
                rating=update.rating_after,
                recorded_at=played_at,
                match_id=match.id,
            )
        )
    session.flush()

    return MatchReceipt(
        match_id=match.id,
        player_a_id=player_a.id,
        player_b_id=player_b.id,
        player_a_name=player_a.name,
        player_b_name=player_b.name,
        winner=recorded.winner,
        rating_a_before=recorded.outcome.rating_a_before,
        rating_b_before=recorded.outcome.rating_b_before,
        rating_a_after=recorded.outcome.rating_a_after,
        rating_b_after=recorded.outcome.rating_b_after,
        played_at=played_at,
    )


def _apply_update(player: Player, update: PlayerUpdate) -> None:
    state = update.state_after
    player.current_rating = state.current_rating
    player.matches_played = state.matches_played
    player.wins = state.wins
    player.losses = state.losses
    player.draws = state.draws
    player.last_active_at = state.last_active_at


def _match_row(recorded: RecordedMatch, played_at: datetime) -> Match:
    outcome = recorded.outcome
    return Match(
        player_a_id=recorded.player_a.player_id,
        player_b_id=recorded.player_b.player_id,
        winner=recorded.winner,
        rating_a_before=outcome.rating_a_before,
        rating_b_before=outcome.rating_b_before,
        rating_a_after=outcome.rating_a_after,
        rating_b_after=outcome.rating_b_after,
        played_at=played_at,
    )
