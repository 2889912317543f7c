#!/usr/bin/env python3
"""
Replay the full match log and compare with the stored ratings.

Run this after any manual clean-up of the match log (e.g. deleting matches
that should never have been recorded).

Usage:
    python scripts/verify_ratings.py            # report only
    python scripts/verify_ratings.py --repair   # overwrite drifted ratings and records

Exit codes: 0 consistent (or repaired), 1 mismatches found.
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
from knightrank.services.audit import verify_ratings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Verify stored ratings against a replay of the match log.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--repair",
        action="store_true",
        help="Overwrite mismatching stored ratings and records with the replayed values.",
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
        report = verify_ratings(session, repair=args.repair)

    print(f"Players checked:   {report.players_checked}")
    print(f"Matches replayed:  {report.matches_replayed}")
    print(f"Drifted matches:   {len(report.drifted_match_ids)}")
    for player_id, stored, replayed in report.mismatches:
        print(f"  player {player_id:>6}  stored {stored}  replayed {replayed}")
    for player_id in report.record_mismatches:
        print(f"  player {player_id:>6}  record differs from the match log")
    if report.repaired:
        print(
            f"Repaired {len(report.mismatches)} ratings and "
            f"{len(report.record_mismatches)} records"
        )

    return 0 if report.consistent or report.repaired else 1


if __name__ == "__main__":
    raise SystemExit(main())
