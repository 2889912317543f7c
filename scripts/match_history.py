#!/usr/bin/env python3
"""
Print the match log, newest first, for the whole ladder or one player.

Decay and activity-bonus events are listed alongside the games.

Usage:
    python scripts/match_history.py
    python scripts/match_history.py --limit 20
    python scripts/match_history.py --player 7
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from knightrank.db import get_session
from knightrank.errors import NotFoundError
from knightrank.match_outcomes import is_system_outcome
from knightrank.services.players import player_matches, recent_matches


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Show recorded matches, newest first.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--player",
        type=int,
        default=None,
        help="Only show matches this player id took part in.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Only show the N most recent matches.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()

    with get_session() as session:
        try:
            if args.player is not None:
                matches = player_matches(session, args.player, limit=args.limit)
            else:
                matches = recent_matches(session, limit=args.limit)
        except NotFoundError as exc:
            print(f"ERROR: {exc}")
            return 1

        print(f"{'Played at':<19}  {'Player A':<20} {'Player B':<20} {'Result':<15} {'A':>11}  {'B':>11}")
        print("-" * 103)
        for match in matches:
            rating_a = f"{match.rating_a_before}->{match.rating_a_after}"
            if is_system_outcome(match.winner):
                opponent, rating_b = "-", "-"
            else:
                opponent = match.player_b.name
                rating_b = f"{match.rating_b_before}->{match.rating_b_after}"
            print(
                f"{match.played_at:%Y-%m-%d %H:%M:%S}  {match.player_a.name:<20} {opponent:<20} "
                f"{match.winner:<15} {rating_a:>11}  {rating_b:>11}"
            )
        print(f"{len(matches)} matches")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
