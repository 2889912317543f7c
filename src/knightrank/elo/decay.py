"""
Inactivity decay for ladder ratings.

Players who stop playing shouldn't be able to sit on a high rating forever.
Once a player has been inactive for longer than the grace period, they lose
a fixed number of points for every started decay period beyond it.

The decay only kicks in strictly after INACTIVITY_THRESHOLD_DAYS, so a
player who played exactly a week ago is still inside the grace period.

Formula:
    periods = (inactive_days - threshold) // period_days
    raw_decay = (periods + 1) * points_per_period
    new_rating = max(floor, current - raw_decay)

The decay is recomputed from the last-active timestamp on every run rather
than accumulated, so each run removes the full amount owed for the whole
absence. Near the floor the applied decay is clamped and may be smaller
than the raw formula amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from knightrank.elo.constants import ACTIVITY_BONUS_EVENT_PREFIX, DECAY_EVENT_PREFIX
from knightrank.elo.params import DEFAULT_PARAMS, RatingParams
from knightrank.elo.state import as_utc
from knightrank.match_outcomes import ACTIVITY_BONUS, DECAY

SECONDS_PER_DAY = 24 * 60 * 60

_EVENT_PREFIXES = {
    DECAY: DECAY_EVENT_PREFIX,
    ACTIVITY_BONUS: ACTIVITY_BONUS_EVENT_PREFIX,
}


@dataclass(frozen=True)
class DecayResult:
    """Outcome of the decay calculation for one player."""
    new_rating: int
    decay_amount: int
    should_decay: bool
    inactive_days: int


def inactive_days_between(last_active_at: datetime, now: datetime) -> int:
    """Whole days between two moments, truncated. Never negative."""
    elapsed = (as_utc(now) - as_utc(last_active_at)).total_seconds()
    return max(0, int(elapsed // SECONDS_PER_DAY))


def calculate_decay(
    current_rating: int,
    last_active_at: Optional[datetime],
    now: datetime,
    floor: Optional[int] = None,
    params: Optional[RatingParams] = None,
) -> DecayResult:
    """
    Calculate how much a player's rating should decay for inactivity.

    Args:
        current_rating: Player's current rating
        last_active_at: When the player last played, or None if never
        now: Reference time for this run
        floor: Lowest rating decay may reach. Defaults to the absolute
               minimum rating; population runs pass the dynamic floor.
        params: Optional parameter overrides

    Returns:
        DecayResult (unchanged rating when no decay applies)

    Examples:
        # Inactive for 45 days: (45 - 7) // 7 = 5 periods -> 30 points
        calculate_decay(1500, now - timedelta(days=45), now)  # new_rating=1470

        # Two points above the floor: decay clamps to exactly 2
        calculate_decay(1002, now - timedelta(days=90), now, floor=1000)
    """
    params = params or DEFAULT_PARAMS
    if floor is None:
        floor = params.absolute_minimum_rating

    # Never played: nothing to decay
    if last_active_at is None:
        return DecayResult(
            new_rating=current_rating,
            decay_amount=0,
            should_decay=False,
            inactive_days=0,
        )

    inactive_days = inactive_days_between(last_active_at, now)
    threshold = params.inactivity_threshold_days

    # Still within the grace period (the threshold day itself included)
    if inactive_days <= threshold:
        return DecayResult(current_rating, 0, False, inactive_days)

    # Already at or below the floor
    if current_rating <= floor:
        return DecayResult(current_rating, 0, False, inactive_days)

    inactive_periods = (inactive_days - threshold) // params.decay_period_days
    raw_decay = (inactive_periods + 1) * params.decay_points_per_period

    new_rating = max(floor, current_rating - raw_decay)
    decay_amount = current_rating - new_rating

    return DecayResult(
        new_rating=new_rating,
        decay_amount=decay_amount,
        should_decay=decay_amount > 0,
        inactive_days=inactive_days,
    )


# Exposed under the name used by dry-run / preview tooling
calculate_player_decay = calculate_decay


def system_event_key(kind: str, at: datetime) -> str:
    """
    Identifier for a decay or activity-bonus event, e.g. ``DECAY-1718000000000``.

    The suffix is the event time in epoch milliseconds, so keys sort in
    chronological order.
    """
    prefix = _EVENT_PREFIXES[kind]
    return f"{prefix}-{int(as_utc(at).timestamp() * 1000)}"


def system_event_kind(key: Optional[str]) -> Optional[str]:
    """Return DECAY / ACTIVITY_BONUS for a system event key, None otherwise."""
    if not key:
        return None
    for kind, prefix in _EVENT_PREFIXES.items():
        if key.startswith(f"{prefix}-"):
            return kind
    return None


def is_system_event_key(key: Optional[str]) -> bool:
    return system_event_kind(key) is not None
