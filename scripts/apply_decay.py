#!/usr/bin/env python3
"""
Apply the weekly inactivity decay and activity bonus.

Normal usage (weekly scheduler, one run per ISO week):
    python scripts/apply_decay.py

Explicit period key (re-running a completed key is a no-op; re-running a
partial one retries only the players that failed):
    python scripts/apply_decay.py --period 2026-W42

Dry run (compute and print the deltas without writing anything):
    python scripts/apply_decay.py --dry-run

Exit codes: 0 success / skipped / paused, 1 partial failure.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from time import perf_counter

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from knightrank.config import settings
from knightrank.db import SessionLocal
from knightrank.errors import ProcessingError
from knightrank.services.decay import DecayCycleReport, current_period_key, run_decay_cycle


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Apply inactivity decay and redistribute it as activity bonus.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the run but do not write to the database.",
    )
    parser.add_argument(
        "--period",
        default=None,
        help="Idempotency key for this run (default: current ISO week, e.g. 2026-W42).",
    )
    parser.add_argument(
        "--metrics-json",
        default=None,
        help="Write a JSON summary to this path on completion.",
    )
    return parser


def _print_report(report: DecayCycleReport) -> None:
    result = report.result
    print("-" * 60)
    print(f"Status:            {report.status}")
    if report.resumed:
        print(f"Resumed run:       {report.run_id}")
        for delta in report.applied:
            print(f"  {delta.kind:<15} player {delta.player_id:>6}  "
                  f"{delta.old_rating} -> {delta.new_rating}")
    if result is None:
        if report.failed:
            print(f"Failed:            {report.failed_player_ids}")
        return
    print(f"Players:           {result.players_processed}")
    print(f"Active:            {result.active_player_count}")
    print(f"Floor:             {result.floor_used}")
    print(f"Decayed:           {len(result.decayed_players)}  (total {result.total_decay})")
    print(f"Bonus per active:  {result.bonus_per_player}")
    print(f"Undistributed:     {result.undistributed}")
    for delta in result.deltas:
        print(f"  {delta.kind:<15} player {delta.player_id:>6}  "
              f"{delta.old_rating} -> {delta.new_rating}")
    if report.failed:
        print(f"Failed:            {report.failed_player_ids}")


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    now = datetime.now(timezone.utc)
    period_key = args.period or current_period_key(now)
    print(f"DECAY RUN  period={period_key}  dry_run={args.dry_run}  started={now.isoformat()}")

    t_start = perf_counter()
    exit_code = 0
    try:
        report = run_decay_cycle(
            SessionLocal, now=now, simulate=args.dry_run, period_key=period_key,
        )
    except ProcessingError as exc:
        report = exc.report
        exit_code = 1
    elapsed = perf_counter() - t_start

    _print_report(report)
    print(f"Elapsed:           {elapsed:.2f}s")

    if args.metrics_json:
        payload = {**report.to_dict(), "elapsed_s": round(elapsed, 3), "started_at": now.isoformat()}
        metrics_path = Path(args.metrics_json)
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
