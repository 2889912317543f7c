"""Shared winner-token definitions and helpers.

This module is the single source of truth for the ``winner`` values stored
on match records, reused by the rating engine, the persistence services and
the maintenance scripts.
"""

from __future__ import annotations

from knightrank.errors import ValidationError

WINNER_A = "A"
WINNER_B = "B"
DRAW = "DRAW"

# System-generated events. The B side of these records is a sentinel.
DECAY = "DECAY"
ACTIVITY_BONUS = "ACTIVITY_BONUS"

# Outcomes a caller may submit for a match between two players.
PLAYER_OUTCOMES: tuple[str, ...] = (WINNER_A, WINNER_B, DRAW)

# Outcomes written by the decay run.
SYSTEM_OUTCOMES: tuple[str, ...] = (DECAY, ACTIVITY_BONUS)

ALL_OUTCOMES: tuple[str, ...] = PLAYER_OUTCOMES + SYSTEM_OUTCOMES

# Actual scores (A, B) for each player outcome.
OUTCOME_SCORES: dict[str, tuple[float, float]] = {
    WINNER_A: (1.0, 0.0),
    WINNER_B: (0.0, 1.0),
    DRAW: (0.5, 0.5),
}

# Stored rating of the sentinel opponent of system events.
SYSTEM_OPPONENT_RATING = 0


def is_system_outcome(winner: str) -> bool:
    return winner in SYSTEM_OUTCOMES


def normalize_winner(raw: object) -> str:
    """Return ``raw`` if it is an outcome a caller may submit.

    Surrounding whitespace is ignored. Tokens are case sensitive, and system
    outcomes are rejected since only the decay run writes them.

    Raises:
        ValidationError: if ``raw`` is not one of A, B or DRAW.
    """
    if not isinstance(raw, str):
        raise ValidationError(f"winner must be one of {PLAYER_OUTCOMES}, got {raw!r}")
    token = raw.strip()
    if token not in PLAYER_OUTCOMES:
        raise ValidationError(f"winner must be one of {PLAYER_OUTCOMES}, got {raw!r}")
    return token
