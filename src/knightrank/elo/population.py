"""
Population decay run: decay inactive players, hand the points to active ones.

One run works on a single consistent snapshot of every player and is a
two-pass computation:

1. Aggregate pass
   - floor = min(ABSOLUTE_MINIMUM_RATING, lowest current rating)
   - active players = last active less than INACTIVITY_THRESHOLD_DAYS ago
   - per-player decay (independent, so it can be fanned out to an executor)
   - total decay = sum of applied decay amounts

2. Distribute pass
   - bonus per active player = min(MAX_WEEKLY_BONUS, total_decay // active_count)
   - one delta per decayed player and, if the bonus is positive, one per
     active player

Nothing here touches storage. The result is handed to the persistence layer
(see knightrank.services.decay), which applies each delta in its own
transaction. Because the floor and bonus are fixed before any delta is
produced, applying the deltas in any order (or concurrently) gives the same
end state.

If no player is active the run is paused: decayed points would have nowhere
to go, so no deltas are produced at all.

Integer division means the pot is not always fully distributed; the
remainder (and anything above the cap) simply leaves the pool.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Iterable, Optional

from knightrank.elo.decay import DecayResult, calculate_decay
from knightrank.elo.params import DEFAULT_PARAMS, RatingParams
from knightrank.elo.state import PlayerRatingState, as_utc
from knightrank.match_outcomes import ACTIVITY_BONUS, DECAY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingDelta:
    """One player's rating change produced by a decay run."""
    player_id: Any
    old_rating: int
    new_rating: int
    amount: int  # Always positive; the direction follows from ``kind``
    kind: str  # 'DECAY' or 'ACTIVITY_BONUS'
    inactive_days: Optional[int] = None

    @property
    def change(self) -> int:
        """Signed rating change (negative for decay)."""
        return self.new_rating - self.old_rating

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "old_rating": self.old_rating,
            "new_rating": self.new_rating,
            "amount": self.amount,
            "kind": self.kind,
            "inactive_days": self.inactive_days,
        }


@dataclass
class DecayCycleResult:
    """Everything one decay run computed, before anything is persisted."""
    now: datetime
    floor_used: int
    decayed_players: list[RatingDelta] = field(default_factory=list)
    bonused_players: list[RatingDelta] = field(default_factory=list)
    total_decay: int = 0
    bonus_per_player: int = 0
    active_player_count: int = 0
    players_processed: int = 0
    simulate: bool = False
    paused: bool = False

    @property
    def deltas(self) -> list[RatingDelta]:
        """All deltas to apply, decays first."""
        return self.decayed_players + self.bonused_players

    @property
    def total_bonus(self) -> int:
        return self.bonus_per_player * len(self.bonused_players)

    @property
    def undistributed(self) -> int:
        """Decayed points that left the pool (division remainder or cap)."""
        return self.total_decay - self.total_bonus

    def to_dict(self) -> dict[str, Any]:
        return {
            "now": self.now.isoformat(),
            "floor_used": self.floor_used,
            "total_decay": self.total_decay,
            "bonus_per_player": self.bonus_per_player,
            "active_player_count": self.active_player_count,
            "players_processed": self.players_processed,
            "simulate": self.simulate,
            "paused": self.paused,
            "decayed_players": [d.to_dict() for d in self.decayed_players],
            "bonused_players": [d.to_dict() for d in self.bonused_players],
        }


def compute_floor(players: Iterable[PlayerRatingState], absolute_minimum: int) -> int:
    """Lower of the hard minimum and the lowest rating actually present."""
    return min([absolute_minimum, *(p.current_rating for p in players)])


def is_active(player: PlayerRatingState, now: datetime, threshold_days: int) -> bool:
    """
    Whether a player counts as active for the activity bonus.

    Compares the exact elapsed time against the threshold (strictly less
    than), unlike the whole-day check the decay calculation uses.
    """
    if player.last_active_at is None:
        return False
    return as_utc(now) - as_utc(player.last_active_at) < timedelta(days=threshold_days)


def _decay_for_player(
    player: PlayerRatingState,
    now: datetime,
    floor: int,
    params: RatingParams,
) -> DecayResult:
    return calculate_decay(player.current_rating, player.last_active_at, now, floor, params)


class PopulationDecayProcessor:
    """
    Computes the decay and activity-bonus deltas for one scheduled run.

    Usage:
        processor = PopulationDecayProcessor()
        result = processor.run(snapshot, now=datetime.now(timezone.utc))
        for delta in result.deltas:
            ...  # persist each one atomically

    The per-player decay map can be fanned out by passing any
    ``concurrent.futures.Executor``; by default it runs inline.
    """

    def __init__(
        self,
        params: Optional[RatingParams] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.params = params or DEFAULT_PARAMS
        self.executor = executor

    def run(
        self,
        players: Iterable[PlayerRatingState],
        now: datetime,
        simulate: bool = False,
    ) -> DecayCycleResult:
        """
        Compute one decay run over a full snapshot.

        Args:
            players: Every player in the ladder (the snapshot is materialized
                     once, so generators are fine)
            now: Reference time for the run
            simulate: Mark the result as a dry run. The computation is
                      identical; the flag tells the caller not to persist.

        Returns:
            DecayCycleResult with floor, deltas and aggregates
        """
        params = self.params
        snapshot = list(players)

        # --- Aggregate pass -------------------------------------------------
        floor = compute_floor(snapshot, params.absolute_minimum_rating)
        active = [
            p for p in snapshot
            if is_active(p, now, params.inactivity_threshold_days)
        ]

        result = DecayCycleResult(
            now=now,
            floor_used=floor,
            active_player_count=len(active),
            players_processed=len(snapshot),
            simulate=simulate,
        )

        if not active:
            result.paused = True
            logger.info(
                "Decay paused: no active players among %d (floor=%d)",
                len(snapshot), floor,
            )
            return result

        decay_results = self._map_decay(snapshot, now, floor)

        decayed = [
            RatingDelta(
                player_id=player.player_id,
                old_rating=player.current_rating,
                new_rating=decay.new_rating,
                amount=decay.decay_amount,
                kind=DECAY,
                inactive_days=decay.inactive_days,
            )
            for player, decay in zip(snapshot, decay_results)
            if decay.should_decay
        ]
        total_decay = sum(d.amount for d in decayed)

        # --- Distribute pass ------------------------------------------------
        bonus = 0
        if total_decay > 0:
            bonus = min(params.max_weekly_bonus, total_decay // len(active))

        bonused: list[RatingDelta] = []
        if bonus > 0:
            bonused = [
                RatingDelta(
                    player_id=player.player_id,
                    old_rating=player.current_rating,
                    new_rating=player.current_rating + bonus,
                    amount=bonus,
                    kind=ACTIVITY_BONUS,
                )
                for player in active
            ]

        result.decayed_players = decayed
        result.bonused_players = bonused
        result.total_decay = total_decay
        result.bonus_per_player = bonus

        logger.debug(
            "Decay run computed: floor=%d decayed=%d total_decay=%d active=%d bonus=%d",
            floor, len(decayed), total_decay, len(active), bonus,
        )
        return result

    def _map_decay(
        self,
        snapshot: list[PlayerRatingState],
        now: datetime,
        floor: int,
    ) -> list[DecayResult]:
        fn = partial(_decay_for_player, now=now, floor=floor, params=self.params)
        if self.executor is None:
            return [fn(p) for p in snapshot]
        return list(self.executor.map(fn, snapshot))


def run_decay_cycle(
    players: Iterable[PlayerRatingState],
    now: datetime,
    simulate: bool = False,
    params: Optional[RatingParams] = None,
) -> DecayCycleResult:
    """Convenience wrapper around PopulationDecayProcessor.run()."""
    return PopulationDecayProcessor(params).run(players, now, simulate=simulate)
