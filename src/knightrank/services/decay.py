"""
Decay service: applies one scheduled decay run to the database.

Flow:
1. Skip if the run's period key was already processed
2. Read the clock and one snapshot of every player in the same transaction
3. Compute all deltas with PopulationDecayProcessor (floor and bonus are
   fixed by the snapshot; nothing is recomputed mid-run)
4. Unless simulating, register the run (the unique period key makes a
   concurrent duplicate invocation fail here) and apply every delta in its
   own transaction:
   - lock the player row and check it still holds the snapshot rating
   - write the new rating, a DECAY / ACTIVITY_BONUS match record against
     the sentinel opponent, and a rating history entry
5. Close the run record with counts and status

Deltas are independent, so one failing does not stop the others. The
report lists exactly which players were updated and which were not; when
anything failed, ProcessingError is raised with the report attached so the
caller can decide whether to re-run for the remainder.

Re-running a period whose run ended ``partial`` resumes it: only the failed
deltas are retried, each re-based on the player's current rating (decay
still stops at the run's floor), and the run record is updated in place.
Players already applied are never touched twice.

Every event of a run is stamped with the run's reference time. When the
caller does not pass one it is read right before the snapshot, so a match
the snapshot already contains is never ordered after the decay that was
computed from it.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from knightrank.db.models import DecayRun, Match, Player, RatingHistory, to_db_time, utcnow
from knightrank.db.session import SessionFactory, session_scope
from knightrank.elo.decay import system_event_key
from knightrank.elo.params import RatingParams
from knightrank.elo.population import DecayCycleResult, PopulationDecayProcessor, RatingDelta
from knightrank.errors import ConcurrencyConflict, KnightrankError, NotFoundError, ProcessingError
from knightrank.match_outcomes import ACTIVITY_BONUS, DECAY, SYSTEM_OPPONENT_RATING
from knightrank.services.players import load_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailedDelta:
    """A delta that could not be applied, with the reason."""
    delta: RatingDelta
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {**self.delta.to_dict(), "error": self.error}


@dataclass
class DecayCycleReport:
    """Outcome of one decay run as seen by the caller."""
    result: Optional[DecayCycleResult]
    period_key: Optional[str] = None
    run_id: Optional[int] = None
    applied: list[RatingDelta] = field(default_factory=list)
    failed: list[FailedDelta] = field(default_factory=list)
    skipped: bool = False
    # Retry of an earlier partial run; ``result`` is None
    resumed: bool = False

    @property
    def simulate(self) -> bool:
        return self.result is not None and self.result.simulate

    @property
    def status(self) -> str:
        if self.resumed and not self.skipped:
            return "partial" if self.failed else "success"
        if self.skipped or self.result is None:
            return "skipped"
        if self.result.paused:
            return "paused"
        if self.simulate:
            return "simulated"
        if self.failed:
            return "partial"
        return "success"

    @property
    def applied_player_ids(self) -> list[Any]:
        return [d.player_id for d in self.applied]

    @property
    def failed_player_ids(self) -> list[Any]:
        return [f.delta.player_id for f in self.failed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "period_key": self.period_key,
            "run_id": self.run_id,
            "resumed": self.resumed,
            "result": self.result.to_dict() if self.result else None,
            "applied": [d.to_dict() for d in self.applied],
            "failed": [f.to_dict() for f in self.failed],
        }


def current_period_key(now: Optional[datetime] = None) -> str:
    """ISO week of ``now`` (e.g. '2026-W42'), the natural key of a weekly run."""
    now = now or datetime.now(timezone.utc)
    year, week, _ = now.isocalendar()
    return f"{year}-W{week:02d}"


def run_decay_cycle(
    session_factory: SessionFactory,
    now: Optional[datetime] = None,
    simulate: bool = False,
    period_key: Optional[str] = None,
    params: Optional[RatingParams] = None,
    executor: Optional[Executor] = None,
) -> DecayCycleReport:
    """
    Run (or simulate) one decay cycle.

    Args:
        session_factory: Callable returning a new Session
        now: Reference time (default: the current UTC time, read together
             with the snapshot)
        simulate: Compute and report without writing anything
        period_key: Idempotency key for the run (e.g. current_period_key()).
                    A key that was already processed makes the run a no-op,
                    unless that run ended partial, in which case its failed
                    deltas are retried.
        params: Optional rating parameter overrides
        executor: Optional executor for the per-player decay map

    Returns:
        DecayCycleReport

    Raises:
        ProcessingError: One or more deltas failed to apply (report attached)
    """
    now = to_db_time(now) if now is not None else None
    processor = PopulationDecayProcessor(params or RatingParams.from_settings(), executor)

    resume_run_id = None
    with session_scope(session_factory) as session:
        previous = _previous_run(session, period_key) if period_key and not simulate else None
        if previous is not None and previous.status != "partial":
            logger.warning("Decay run for period %s already processed; skipping", period_key)
            return DecayCycleReport(result=None, period_key=period_key, skipped=True)
        if previous is not None:
            resume_run_id = previous.id
        else:
            now = now or utcnow()
            snapshot = list(load_snapshot(session).values())

    if resume_run_id is not None:
        return _resume_run(session_factory, resume_run_id, now or utcnow())

    result = processor.run(snapshot, now, simulate=simulate)
    report = DecayCycleReport(result=result, period_key=period_key)

    logger.info(
        "Decay run%s: players=%d active=%d floor=%d decayed=%d total_decay=%d bonus=%d%s",
        " (simulated)" if simulate else "",
        result.players_processed, result.active_player_count, result.floor_used,
        len(result.decayed_players), result.total_decay, result.bonus_per_player,
        " [paused: no active players]" if result.paused else "",
    )

    if simulate:
        return report

    try:
        report.run_id = _open_run(session_factory, result, period_key)
    except IntegrityError:
        logger.warning("Decay run for period %s registered concurrently; skipping", period_key)
        return DecayCycleReport(result=None, period_key=period_key, skipped=True)

    for delta in result.deltas:
        try:
            _apply_delta(session_factory, delta, now, report.run_id)
        except (KnightrankError, SQLAlchemyError) as exc:
            logger.error(
                "Failed to apply %s to player %s (%d -> %d): %s",
                delta.kind, delta.player_id, delta.old_rating, delta.new_rating, exc,
            )
            report.failed.append(FailedDelta(delta=delta, error=str(exc)))
        else:
            report.applied.append(delta)

    _close_run(session_factory, report)

    if report.failed:
        raise ProcessingError(
            f"Decay run applied {len(report.applied)} of {len(result.deltas)} deltas; "
            f"failed players: {report.failed_player_ids}",
            report=report,
        )
    return report


def _previous_run(session: Session, period_key: str) -> Optional[DecayRun]:
    return session.scalar(select(DecayRun).where(DecayRun.period_key == period_key))


def _resume_run(session_factory: SessionFactory, run_id: int, now: datetime) -> DecayCycleReport:
    """Retry the failed deltas of a partial run."""
    with session_scope(session_factory) as session:
        run = session.get(DecayRun, run_id, with_for_update=True)
        if run.status != "partial":
            # Another invocation claimed it first
            logger.warning("Decay run %d is %s; not resuming", run_id, run.status)
            return DecayCycleReport(result=None, period_key=run.period_key, skipped=True)
        run.status = "running"
        period_key = run.period_key
        floor = run.floor_used
        pending = [_delta_from_dict(entry) for entry in (run.details or {}).get("failed", [])]
        current = load_snapshot(session, [d.player_id for d in pending])

    report = DecayCycleReport(result=None, period_key=period_key, run_id=run_id, resumed=True)
    logger.info("Resuming decay run %d (period %s): %d deltas pending", run_id, period_key, len(pending))

    for pending_delta in pending:
        state = current.get(pending_delta.player_id)
        if state is None:
            report.failed.append(FailedDelta(delta=pending_delta, error="player not found"))
            continue
        delta = _rebase(pending_delta, state.current_rating, floor)
        if delta is None:
            logger.info(
                "Player %s is at the floor (%d); nothing left to decay",
                pending_delta.player_id, floor,
            )
            continue
        try:
            _apply_delta(session_factory, delta, now, run_id)
        except (KnightrankError, SQLAlchemyError) as exc:
            logger.error(
                "Failed again to apply %s to player %s (%d -> %d): %s",
                delta.kind, delta.player_id, delta.old_rating, delta.new_rating, exc,
            )
            report.failed.append(FailedDelta(delta=delta, error=str(exc)))
        else:
            report.applied.append(delta)

    with session_scope(session_factory) as session:
        run = session.get(DecayRun, run_id)
        run.ended_at = utcnow()
        run.players_decayed += sum(1 for d in report.applied if d.kind == DECAY)
        run.players_bonused += sum(1 for d in report.applied if d.kind == ACTIVITY_BONUS)
        run.players_failed = len(report.failed)
        run.status = report.status
        run.details = {
            **(run.details or {}),
            "failed": [f.to_dict() for f in report.failed],
            "resumed_at": now.isoformat(),
        }

    if report.failed:
        raise ProcessingError(
            f"Resumed decay run applied {len(report.applied)} of {len(pending)} deltas; "
            f"failed players: {report.failed_player_ids}",
            report=report,
        )
    return report


def _delta_from_dict(entry: dict[str, Any]) -> RatingDelta:
    return RatingDelta(
        player_id=entry["player_id"],
        old_rating=entry["old_rating"],
        new_rating=entry["new_rating"],
        amount=entry["amount"],
        kind=entry["kind"],
        inactive_days=entry.get("inactive_days"),
    )


def _rebase(delta: RatingDelta, current_rating: int, floor: int) -> Optional[RatingDelta]:
    """The same rating change expressed against ``current_rating``."""
    if delta.kind == DECAY:
        new_rating = max(current_rating - delta.amount, floor)
        if new_rating >= current_rating:
            return None
    else:
        new_rating = current_rating + delta.amount
    return replace(
        delta,
        old_rating=current_rating,
        new_rating=new_rating,
        amount=abs(new_rating - current_rating),
    )


def _open_run(
    session_factory: SessionFactory,
    result: DecayCycleResult,
    period_key: Optional[str],
) -> int:
    with session_scope(session_factory) as session:
        run = DecayRun(
            period_key=period_key,
            started_at=result.now,
            floor_used=result.floor_used,
            total_decay=result.total_decay,
            bonus_per_player=result.bonus_per_player,
            status="paused" if result.paused else "running",
        )
        session.add(run)
        session.flush()
        return run.id


def _close_run(session_factory: SessionFactory, report: DecayCycleReport) -> None:
    result = report.result
    with session_scope(session_factory) as session:
        run = session.get(DecayRun, report.run_id)
        run.ended_at = utcnow()
        run.players_decayed = sum(1 for d in report.applied if d.kind == DECAY)
        run.players_bonused = sum(1 for d in report.applied if d.kind == ACTIVITY_BONUS)
        run.players_failed = len(report.failed)
        run.status = report.status
        run.details = {
            "active_player_count": result.active_player_count,
            "players_processed": result.players_processed,
            "undistributed": result.undistributed,
            "failed": [f.to_dict() for f in report.failed],
        }


def _apply_delta(
    session_factory: SessionFactory,
    delta: RatingDelta,
    now: datetime,
    run_id: int,
) -> None:
    """Apply one delta in its own transaction (compare-and-swap on the rating)."""
    with session_scope(session_factory) as session:
        player = session.get(Player, delta.player_id, with_for_update=True)
        if player is None:
            raise NotFoundError(f"Player {delta.player_id!r} not found", player_id=delta.player_id)
        if player.current_rating != delta.old_rating:
            raise ConcurrencyConflict(
                f"Player {delta.player_id} rating changed since the snapshot "
                f"({delta.old_rating} -> {player.current_rating})"
            )

        player.current_rating = delta.new_rating

        match = Match(
            player_a_id=player.id,
            player_b_id=None,
            winner=delta.kind,
            rating_a_before=delta.old_rating,
            rating_b_before=SYSTEM_OPPONENT_RATING,
            rating_a_after=delta.new_rating,
            rating_b_after=SYSTEM_OPPONENT_RATING,
            played_at=now,
            decay_run_id=run_id,
        )
        session.add(match)
        session.flush()

        session.add(
            RatingHistory(
                player_id=player.id,
                rating=delta.new_rating,
                recorded_at=now,
                match_id=match.id,
                event_key=system_event_key(delta.kind, now),
            )
        )
