#!/usr/bin/env python3
"""
Create match rows for decay / activity-bonus history entries that lack one.

Older decay runs only wrote a rating history entry keyed DECAY-<ms> or
ACTIVITY_BONUS-<ms>. This creates the matching system match so the match log
is complete and can be replayed.

Usage:
    python scripts/backfill_system_matches.py --dry-run
    python scripts/backfill_system_matches.py
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
from knightrank.services.audit import backfill_system_matches


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Backfill system matches for orphaned history entries.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List what would be created without writing to the database.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    with get_session() as session:
        report = backfill_system_matches(session, dry_run=args.dry_run)

    for row in report.created:
        print(
            f"  {row['kind']:<15} player {row['player_id']:>6}  "
            f"{row['rating_before']} -> {row['rating_after']}  at {row['played_at']}"
        )
    print(f"Entries found:     {report.entries_found}")
    if args.dry_run:
        print("(dry run, nothing written)")
    else:
        print(f"Matches created:   {report.matches_created}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
