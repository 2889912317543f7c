"""Storage-agnostic player state consumed and produced by the rating engine."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Hashable, Optional

from knightrank.elo.constants import STARTING_RATING


@dataclass(frozen=True)
class PlayerRatingState:
    """
    Snapshot of one player's rating and record.

    The engine never mutates these; updated states are produced with
    ``dataclasses.replace`` and handed back to the persistence layer.
    """
    player_id: Hashable
    current_rating: int = STARTING_RATING
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    last_active_at: Optional[datetime] = None

    @property
    def is_consistent(self) -> bool:
        """Whether wins + losses + draws adds up to matches played."""
        return self.wins + self.losses + self.draws == self.matches_played

    def with_rating(self, rating: int) -> "PlayerRatingState":
        return replace(self, current_rating=rating)


def as_utc(moment: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive values are taken to already be UTC (that is how the database
    layer stores them), so mixing naive and aware inputs is safe.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
