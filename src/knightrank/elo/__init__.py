"""
Rating engine for the chess ladder.

Implements the ladder's zero-sum rating system:
- Classic Elo match updates (K=32, 400-point spread, integer ratings)
- Inactivity decay above a dynamic floor
- Weekly redistribution of decayed points to active players
- Match-log replay for validating stored ratings

Everything in this package is pure computation; persistence lives in
knightrank.services.
"""

from knightrank.elo.calculator import (
    EloCalculator,
    MatchOutcome,
    expected_score,
    match_outcome,
    update_rating,
)
from knightrank.elo.decay import DecayResult, calculate_decay, calculate_player_decay
from knightrank.elo.params import RatingParams
from knightrank.elo.population import (
    DecayCycleResult,
    PopulationDecayProcessor,
    RatingDelta,
    run_decay_cycle,
)
from knightrank.elo.recorder import MatchRecorder, PlayerUpdate, RecordedMatch
from knightrank.elo.replay import HistoricalMatch, ReplayResult, replay_history
from knightrank.elo.state import PlayerRatingState

__all__ = [
    "EloCalculator",
    "MatchOutcome",
    "expected_score",
    "match_outcome",
    "update_rating",
    "DecayResult",
    "calculate_decay",
    "calculate_player_decay",
    "RatingParams",
    "DecayCycleResult",
    "PopulationDecayProcessor",
    "RatingDelta",
    "run_decay_cycle",
    "MatchRecorder",
    "PlayerUpdate",
    "RecordedMatch",
    "HistoricalMatch",
    "ReplayResult",
    "replay_history",
    "PlayerRatingState",
]
