#!/usr/bin/env python3
"""
Add a player to the ladder at the starting rating.

Usage:
    python scripts/add_player.py "Magnus"
    python scripts/add_player.py "Judit" "Garry" "Hikaru"
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from knightrank.config import settings
from knightrank.db import get_session
from knightrank.errors import ValidationError
from knightrank.services.players import add_player


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Add players to the ladder.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("names", nargs="+", help="Player names (must be unique).")
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        with get_session() as session:
            players = [add_player(session, name) for name in args.names]
            for player in players:
                print(f"{player.id:>6}  {player.name:<30} {player.current_rating}")
    except ValidationError as exc:
        print(f"ERROR: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
