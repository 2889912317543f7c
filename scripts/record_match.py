#!/usr/bin/env python3
"""
Record a match result and update both players.

Usage:
    python scripts/record_match.py 12 7 A       # player 12 beat player 7
    python scripts/record_match.py 12 7 DRAW
    python scripts/record_match.py 12 7 B --json
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from knightrank.config import settings
from knightrank.db import SessionLocal
from knightrank.errors import ConcurrencyConflict, NotFoundError, ValidationError
from knightrank.match_outcomes import PLAYER_OUTCOMES
from knightrank.services.matches import record_match


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Record one match.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("player_a", type=int, help="Player A id.")
    parser.add_argument("player_b", type=int, help="Player B id.")
    parser.add_argument("winner", help=f"One of {', '.join(PLAYER_OUTCOMES)}.")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the receipt as JSON instead of a summary line.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        receipt = record_match(SessionLocal, args.player_a, args.player_b, args.winner)
    except (ValidationError, NotFoundError) as exc:
        print(f"ERROR: {exc}")
        return 1
    except ConcurrencyConflict as exc:
        print(f"ERROR: match not recorded, try again: {exc}")
        return 2

    if args.json:
        print(json.dumps(receipt.to_dict(), indent=2))
    else:
        print(
            f"Match {receipt.match_id}: "
            f"{receipt.player_a_name} {receipt.rating_a_before} -> {receipt.rating_a_after} "
            f"({receipt.delta_a:+d}), "
            f"{receipt.player_b_name} {receipt.rating_b_before} -> {receipt.rating_b_after} "
            f"({receipt.delta_b:+d})"
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
