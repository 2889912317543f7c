#!/usr/bin/env python3
"""
Print the ladder standings, highest rating first.

Usage:
    python scripts/leaderboard.py
    python scripts/leaderboard.py --top 10
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from knightrank.db import get_session
from knightrank.services.players import leaderboard


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Show the ladder standings.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--top",
        type=int,
        default=None,
        help="Only show the first N players.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()

    with get_session() as session:
        players = leaderboard(session)
        if args.top is not None:
            players = players[: args.top]

        print(f"{'#':>3}  {'Player':<30} {'Rating':>6}  {'W-L-D':>9}  {'Win %':>5}")
        print("-" * 60)
        for rank, player in enumerate(players, start=1):
            record = f"{player.wins}-{player.losses}-{player.draws}"
            print(
                f"{rank:>3}  {player.name:<30} {player.current_rating:>6}  "
                f"{record:>9}  {player.win_rate * 100:>5.1f}"
            )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
