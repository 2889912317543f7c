"""
History replay: rebuild every rating from the match log.

Replaying all matches in chronological order from the starting rating must
reproduce each player's stored rating exactly. This is how a contaminated
history is validated (and recomputed) after remedial clean-ups such as
deleting matches that should never have been recorded.

Player matches are re-rated from the replayed ratings, so removing a match
changes every later result for the players involved. Decay and activity
bonus events are not re-derived (they depended on a population snapshot
that no longer exists); their recorded rating change is applied as-is.

The replay also rebuilds each player's record (matches played, wins,
losses, draws, last match time) from the player matches alone. System
events never count as activity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Hashable, Iterable, Mapping, Optional

from knightrank.elo.calculator import match_outcome
from knightrank.elo.params import DEFAULT_PARAMS, RatingParams
from knightrank.match_outcomes import DRAW, WINNER_A, WINNER_B, is_system_outcome


@dataclass(frozen=True)
class HistoricalMatch:
    """One entry of the match log as stored."""
    match_id: Any
    player_a_id: Hashable
    player_b_id: Optional[Hashable]  # None for decay / bonus events
    winner: str
    played_at: datetime
    rating_a_before: int
    rating_b_before: int
    rating_a_after: int
    rating_b_after: int

    @property
    def system_delta(self) -> int:
        """Recorded rating change of a decay / bonus event."""
        return self.rating_a_after - self.rating_a_before


@dataclass(frozen=True)
class ReplayedMatch:
    """Ratings a match should have been stored with."""
    match_id: Any
    rating_a_before: int
    rating_b_before: int
    rating_a_after: int
    rating_b_after: int


@dataclass
class PlayerRecord:
    """Match record of one player as rebuilt from the log."""
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    last_active_at: Optional[datetime] = None

    def count(self, winner: str, side: str, played_at: datetime) -> None:
        self.matches_played += 1
        if winner == DRAW:
            self.draws += 1
        elif winner == side:
            self.wins += 1
        else:
            self.losses += 1
        self.last_active_at = played_at


@dataclass
class ReplayResult:
    """Final ratings and records plus the matches whose stored values drifted."""
    ratings: dict[Hashable, int] = field(default_factory=dict)
    records: dict[Hashable, PlayerRecord] = field(default_factory=dict)
    matches_replayed: int = 0
    drifted: list[ReplayedMatch] = field(default_factory=list)
    starting_rating: int = DEFAULT_PARAMS.starting_rating

    def rating_for(self, player_id: Hashable) -> int:
        return self.ratings.get(player_id, self.starting_rating)

    def record_for(self, player_id: Hashable) -> PlayerRecord:
        """Replayed record; players without matches get an empty one."""
        return self.records.get(player_id, PlayerRecord())

    def record_mismatches(self, stored: Mapping[Hashable, PlayerRecord]) -> list[Hashable]:
        """Ids of the players whose stored record differs from the replay, sorted."""
        return sorted(
            (player_id for player_id, record in stored.items()
             if record != self.record_for(player_id)),
            key=str,
        )

    def mismatches(self, stored: Mapping[Hashable, int]) -> list[tuple[Hashable, int, int]]:
        """
        Compare replayed ratings with stored ones.

        Returns:
            (player_id, stored_rating, replayed_rating) for every player
            whose stored rating differs, sorted by player id.
        """
        diffs = [
            (player_id, rating, self.rating_for(player_id))
            for player_id, rating in stored.items()
            if rating != self.rating_for(player_id)
        ]
        return sorted(diffs, key=lambda row: str(row[0]))


def replay_history(
    matches: Iterable[HistoricalMatch],
    starting_rating: Optional[int] = None,
    params: Optional[RatingParams] = None,
) -> ReplayResult:
    """
    Replay a match log from scratch.

    Args:
        matches: Match log in any order. Sorted by ``played_at``; ties keep
                 their input order, so pass them ordered by id.
        starting_rating: Rating every player starts from. Defaults to
                         ``params.starting_rating``.
        params: Optional parameter overrides

    Returns:
        ReplayResult with each player's replayed rating and record
    """
    params = params or DEFAULT_PARAMS
    if starting_rating is None:
        starting_rating = params.starting_rating

    result = ReplayResult(starting_rating=starting_rating)
    ratings = result.ratings

    for match in sorted(matches, key=lambda m: m.played_at):
        a_before = ratings.get(match.player_a_id, starting_rating)

        if is_system_outcome(match.winner):
            a_after = a_before + match.system_delta
            ratings[match.player_a_id] = a_after
            replayed = ReplayedMatch(
                match_id=match.match_id,
                rating_a_before=a_before,
                rating_b_before=match.rating_b_before,
                rating_a_after=a_after,
                rating_b_after=match.rating_b_after,
            )
        else:
            b_before = ratings.get(match.player_b_id, starting_rating)
            outcome = match_outcome(
                a_before,
                b_before,
                match.winner,
                k_factor=params.k_factor,
                spread=params.spread,
            )
            ratings[match.player_a_id] = outcome.rating_a_after
            ratings[match.player_b_id] = outcome.rating_b_after
            records = result.records
            records.setdefault(match.player_a_id, PlayerRecord()).count(
                match.winner, WINNER_A, match.played_at
            )
            records.setdefault(match.player_b_id, PlayerRecord()).count(
                match.winner, WINNER_B, match.played_at
            )
            replayed = ReplayedMatch(
                match_id=match.match_id,
                rating_a_before=a_before,
                rating_b_before=b_before,
                rating_a_after=outcome.rating_a_after,
                rating_b_after=outcome.rating_b_after,
            )

        result.matches_replayed += 1
        if (
            replayed.rating_a_before != match.rating_a_before
            or replayed.rating_b_before != match.rating_b_before
            or replayed.rating_a_after != match.rating_a_after
            or replayed.rating_b_after != match.rating_b_after
        ):
            result.drifted.append(replayed)

    return result
