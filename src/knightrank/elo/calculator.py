"""
Elo rating calculator for chess matches.

Implements the classic chess Elo formula:
  Expected score: E_A = 1 / (1 + 10^((R_B - R_A) / 400))
  New rating: R'_A = round(R_A + K * (S_A - E_A))

Where:
  R_A, R_B = Current ratings of players A and B
  S_A = Actual score for A (1 win, 0.5 draw, 0 loss)
  K = How much ratings change (volatility factor, 32)

Ratings are stored as integers. Rounding is half-away-from-zero and is
applied once to the final rating, never to intermediate values.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from knightrank.elo.constants import K_FACTOR, RATING_SPREAD
from knightrank.elo.params import DEFAULT_PARAMS, RatingParams
from knightrank.errors import InvalidInput
from knightrank.match_outcomes import OUTCOME_SCORES, WINNER_A, WINNER_B


@dataclass(frozen=True)
class MatchOutcome:
    """
    Result of rating a single match.

    Contains everything the persistence layer needs to write the match
    record and both players' new ratings.
    """
    # Ratings before the match
    rating_a_before: int
    rating_b_before: int

    # Ratings after the match
    rating_a_after: int
    rating_b_after: int

    # Expected scores (before the match)
    expected_a: float
    expected_b: float

    winner: str  # 'A', 'B' or 'DRAW'

    @property
    def delta_a(self) -> int:
        """Rating change for player A."""
        return self.rating_a_after - self.rating_a_before

    @property
    def delta_b(self) -> int:
        """Rating change for player B."""
        return self.rating_b_after - self.rating_b_before

    @property
    def was_upset(self) -> bool:
        """Whether the lower-rated player won outright."""
        if self.winner == WINNER_A:
            return self.rating_a_before < self.rating_b_before
        if self.winner == WINNER_B:
            return self.rating_b_before < self.rating_a_before
        return False

    def __repr__(self) -> str:
        return (
            f"<MatchOutcome(A: {self.rating_a_before} -> {self.rating_a_after}, "
            f"B: {self.rating_b_before} -> {self.rating_b_after}, "
            f"winner={self.winner})>"
        )


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def expected_score(
    rating_self: float,
    rating_opponent: float,
    spread: float = RATING_SPREAD,
) -> float:
    """
    Probability-weighted share of the points ``rating_self`` is expected to score.

    Symmetric: expected_score(a, b) + expected_score(b, a) == 1.

    Example:
        expected_score(1300, 1500)  # ~0.2403
    """
    try:
        return 1.0 / (1.0 + 10.0 ** ((rating_opponent - rating_self) / spread))
    except OverflowError:
        # Gap of many thousands of points; the limit is a certain loss
        return 0.0


def update_rating(
    current_rating: int,
    opponent_rating: int,
    actual_score: float,
    k_factor: float = K_FACTOR,
    spread: float = RATING_SPREAD,
) -> int:
    """
    New integer rating after one game against ``opponent_rating``.

    Args:
        current_rating: Rating before the game
        opponent_rating: Opponent's rating before the game
        actual_score: 1 for a win, 0.5 for a draw, 0 for a loss
        k_factor: Volatility factor (default 32)

    Example:
        update_rating(1300, 1500, 1)  # -> 1324
    """
    expected = expected_score(current_rating, opponent_rating, spread)
    return round_half_away(current_rating + k_factor * (actual_score - expected))


def match_outcome(
    rating_a: int,
    rating_b: int,
    winner: str,
    k_factor: float = K_FACTOR,
    spread: float = RATING_SPREAD,
) -> MatchOutcome:
    """
    Rate a match between A and B.

    Both updates use the other player's pre-match rating; A's new rating
    is never fed into B's computation.

    Raises:
        InvalidInput: If winner is not 'A', 'B' or 'DRAW'
    """
    scores = OUTCOME_SCORES.get(winner) if isinstance(winner, str) else None
    if scores is None:
        raise InvalidInput(f"winner must be 'A', 'B' or 'DRAW', got {winner!r}")
    score_a, score_b = scores

    return MatchOutcome(
        rating_a_before=rating_a,
        rating_b_before=rating_b,
        rating_a_after=update_rating(rating_a, rating_b, score_a, k_factor, spread),
        rating_b_after=update_rating(rating_b, rating_a, score_b, k_factor, spread),
        expected_a=expected_score(rating_a, rating_b, spread),
        expected_b=expected_score(rating_b, rating_a, spread),
        winner=winner,
    )


class EloCalculator:
    """
    Elo calculator bound to a parameter set.

    Usage:
        calculator = EloCalculator()
        result = calculator.calculate(1500, 1400, winner="B")
        print(result.delta_b)  # +20
    """

    def __init__(self, params: Optional[RatingParams] = None):
        self.params = params or DEFAULT_PARAMS

    def expected_score(self, rating_self: float, rating_opponent: float) -> float:
        return expected_score(rating_self, rating_opponent, self.params.spread)

    def update_rating(self, current_rating: int, opponent_rating: int, actual_score: float) -> int:
        return update_rating(
            current_rating,
            opponent_rating,
            actual_score,
            k_factor=self.params.k_factor,
            spread=self.params.spread,
        )

    def calculate(self, rating_a: int, rating_b: int, winner: str) -> MatchOutcome:
        return match_outcome(
            rating_a,
            rating_b,
            winner,
            k_factor=self.params.k_factor,
            spread=self.params.spread,
        )
