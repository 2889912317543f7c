"""
Match recording: validate one submitted match and compute its effect.

The recorder is the only place player-vs-player ratings are computed.
Callers submit ids and a winner token; ratings are always read from the
trusted snapshot, never accepted from the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Hashable, Mapping, Optional

from knightrank.elo.calculator import MatchOutcome, match_outcome
from knightrank.elo.params import DEFAULT_PARAMS, RatingParams
from knightrank.elo.state import PlayerRatingState
from knightrank.errors import NotFoundError, ValidationError
from knightrank.match_outcomes import DRAW, WINNER_A, WINNER_B, normalize_winner


@dataclass(frozen=True)
class PlayerUpdate:
    """Before/after state and counter increments for one side of a match."""
    player_id: Hashable
    rating_before: int
    rating_after: int
    wins: int
    losses: int
    draws: int
    state_after: PlayerRatingState

    @property
    def delta(self) -> int:
        return self.rating_after - self.rating_before


@dataclass(frozen=True)
class RecordedMatch:
    """Complete effect of one match, ready to be persisted atomically."""
    winner: str
    outcome: MatchOutcome
    player_a: PlayerUpdate
    player_b: PlayerUpdate

    def to_dict(self) -> dict[str, Any]:
        return {
            "winner": self.winner,
            "player_a_id": self.player_a.player_id,
            "player_b_id": self.player_b.player_id,
            "rating_a_before": self.outcome.rating_a_before,
            "rating_b_before": self.outcome.rating_b_before,
            "rating_a_after": self.outcome.rating_a_after,
            "rating_b_after": self.outcome.rating_b_after,
            "delta_a": self.outcome.delta_a,
            "delta_b": self.outcome.delta_b,
        }


def _is_missing(player_id: Any) -> bool:
    if player_id is None:
        return True
    return isinstance(player_id, str) and not player_id.strip()


def _counter_increments(winner: str, side: str) -> tuple[int, int, int]:
    """(wins, losses, draws) to add for ``side`` ('A' or 'B')."""
    if winner == DRAW:
        return 0, 0, 1
    if winner == side:
        return 1, 0, 0
    return 0, 1, 0


class MatchRecorder:
    """
    Validates a match submission and computes both players' new state.

    Usage:
        recorder = MatchRecorder()
        recorded = recorder.record(snapshot, player_a_id=1, player_b_id=2, winner="A")
        print(recorded.player_a.delta, recorded.player_b.delta)

    ``snapshot`` maps player id -> PlayerRatingState and only needs to hold
    the two participants.
    """

    def __init__(self, params: Optional[RatingParams] = None):
        self.params = params or DEFAULT_PARAMS

    @staticmethod
    def validate(player_a_id: Any, player_b_id: Any, winner: Any) -> str:
        """
        Check a submission without looking at any state.

        Returns:
            The canonical winner token

        Raises:
            ValidationError: missing id, same player twice, or unknown winner
        """
        if _is_missing(player_a_id) or _is_missing(player_b_id):
            raise ValidationError("Both player_a_id and player_b_id are required")
        if player_a_id == player_b_id:
            raise ValidationError("Players must be different")
        return normalize_winner(winner)

    def record(
        self,
        players: Mapping[Hashable, PlayerRatingState],
        player_a_id: Hashable,
        player_b_id: Hashable,
        winner: str,
        played_at: Optional[datetime] = None,
    ) -> RecordedMatch:
        """
        Compute the effect of one match.

        Args:
            players: Current state snapshot, keyed by player id
            player_a_id: Player A
            player_b_id: Player B
            winner: 'A', 'B' or 'DRAW'
            played_at: When the match was played. If given, both players'
                       ``last_active_at`` in ``state_after`` is set to it.

        Raises:
            ValidationError: Invalid submission
            NotFoundError: Either player is not in the snapshot
        """
        winner = self.validate(player_a_id, player_b_id, winner)

        state_a = players.get(player_a_id)
        if state_a is None:
            raise NotFoundError(f"Player {player_a_id!r} not found", player_id=player_a_id)
        state_b = players.get(player_b_id)
        if state_b is None:
            raise NotFoundError(f"Player {player_b_id!r} not found", player_id=player_b_id)

        outcome = match_outcome(
            state_a.current_rating,
            state_b.current_rating,
            winner,
            k_factor=self.params.k_factor,
            spread=self.params.spread,
        )

        return RecordedMatch(
            winner=winner,
            outcome=outcome,
            player_a=self._side_update(state_a, outcome.rating_a_after, winner, WINNER_A, played_at),
            player_b=self._side_update(state_b, outcome.rating_b_after, winner, WINNER_B, played_at),
        )

    @staticmethod
    def _side_update(
        state: PlayerRatingState,
        rating_after: int,
        winner: str,
        side: str,
        played_at: Optional[datetime],
    ) -> PlayerUpdate:
        wins, losses, draws = _counter_increments(winner, side)
        state_after = replace(
            state,
            current_rating=rating_after,
            matches_played=state.matches_played + 1,
            wins=state.wins + wins,
            losses=state.losses + losses,
            draws=state.draws + draws,
            last_active_at=played_at if played_at is not None else state.last_active_at,
        )
        return PlayerUpdate(
            player_id=state.player_id,
            rating_before=state.current_rating,
            rating_after=rating_after,
            wins=wins,
            losses=losses,
            draws=draws,
            state_after=state_after,
        )
