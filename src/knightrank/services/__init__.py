"""
Database-backed operations.

Each service owns its transaction boundaries: match recording and decay runs
take a session factory and open as many short transactions as they need,
while the read-side and maintenance helpers work inside a session the caller
provides.
"""

from knightrank.services.audit import backfill_system_matches, load_match_log, verify_ratings
from knightrank.services.decay import DecayCycleReport, current_period_key, run_decay_cycle
from knightrank.services.matches import MatchReceipt, record_match
from knightrank.services.players import (
    add_player,
    get_player,
    leaderboard,
    load_snapshot,
    player_matches,
    rating_series,
    recent_matches,
)

__all__ = [
    "add_player",
    "get_player",
    "leaderboard",
    "load_snapshot",
    "rating_series",
    "recent_matches",
    "player_matches",
    "MatchReceipt",
    "record_match",
    "DecayCycleReport",
    "current_period_key",
    "run_decay_cycle",
    "backfill_system_matches",
    "load_match_log",
    "verify_ratings",
]
