"""Overridable rating engine parameters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from knightrank.elo.constants import (
    ABSOLUTE_MINIMUM_RATING,
    DECAY_PERIOD_DAYS,
    DECAY_POINTS_PER_PERIOD,
    INACTIVITY_THRESHOLD_DAYS,
    K_FACTOR,
    MAX_WEEKLY_BONUS,
    RATING_SPREAD,
    STARTING_RATING,
)

if TYPE_CHECKING:
    from knightrank.config import Settings


@dataclass(frozen=True)
class RatingParams:
    """
    All tunable rating constants in one object.

    Every engine entry point accepts one of these so tests (and one-off
    maintenance runs) can override a constant without touching module state.
    Defaults match the production ladder.
    """
    k_factor: int = K_FACTOR
    spread: int = RATING_SPREAD
    starting_rating: int = STARTING_RATING

    inactivity_threshold_days: int = INACTIVITY_THRESHOLD_DAYS
    decay_points_per_period: int = DECAY_POINTS_PER_PERIOD
    decay_period_days: int = DECAY_PERIOD_DAYS
    absolute_minimum_rating: int = ABSOLUTE_MINIMUM_RATING

    max_weekly_bonus: int = MAX_WEEKLY_BONUS

    @classmethod
    def from_settings(cls, settings: "Settings | None" = None) -> "RatingParams":
        """Build params from application settings (environment / .env)."""
        if settings is None:
            from knightrank.config import settings as app_settings

            settings = app_settings
        return cls(
            k_factor=settings.k_factor,
            starting_rating=settings.starting_rating,
            inactivity_threshold_days=settings.inactivity_threshold_days,
            decay_points_per_period=settings.decay_points_per_period,
            decay_period_days=settings.decay_period_days,
            absolute_minimum_rating=settings.absolute_minimum_rating,
            max_weekly_bonus=settings.max_weekly_bonus,
        )


DEFAULT_PARAMS = RatingParams()
