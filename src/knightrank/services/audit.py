"""
Maintenance operations over the stored logs.

- verify_ratings: replay the whole match log and compare with the stored
  ratings and records (optionally fixing them)
- backfill_system_matches: create the missing match rows for legacy
  decay / activity-bonus history entries that only carry an event key

Both write an UpdateLog row so maintenance runs leave an audit trail.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Hashable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from knightrank.db.models import Match, Player, RatingHistory, UpdateLog
from knightrank.elo.decay import is_system_event_key, system_event_kind
from knightrank.elo.params import RatingParams
from knightrank.elo.replay import HistoricalMatch, PlayerRecord, ReplayResult, replay_history
from knightrank.match_outcomes import SYSTEM_OPPONENT_RATING

logger = logging.getLogger(__name__)


def load_match_log(session: Session) -> list[HistoricalMatch]:
    """Every stored match in (played_at, id) order."""
    stmt = select(Match).order_by(Match.played_at.asc(), Match.id.asc())
    return [
        HistoricalMatch(
            match_id=m.id,
            player_a_id=m.player_a_id,
            player_b_id=m.player_b_id,
            winner=m.winner,
            played_at=m.played_at,
            rating_a_before=m.rating_a_before,
            rating_b_before=m.rating_b_before,
            rating_a_after=m.rating_a_after,
            rating_b_after=m.rating_b_after,
        )
        for m in session.scalars(stmt)
    ]


# =============================================================================
# Rating verification
# =============================================================================

@dataclass
class VerificationReport:
    """Stored ratings compared with a full replay of the match log."""
    players_checked: int
    matches_replayed: int
    mismatches: list[tuple[Hashable, int, int]] = field(default_factory=list)
    # Players whose counters or last match time differ from the replay
    record_mismatches: list[Hashable] = field(default_factory=list)
    drifted_match_ids: list[Any] = field(default_factory=list)
    repaired: bool = False

    @property
    def consistent(self) -> bool:
        return not self.mismatches and not self.record_mismatches

    def to_dict(self) -> dict[str, Any]:
        return {
            "players_checked": self.players_checked,
            "matches_replayed": self.matches_replayed,
            "consistent": self.consistent,
            "mismatches": [
                {"player_id": pid, "stored": stored, "replayed": replayed}
                for pid, stored, replayed in self.mismatches
            ],
            "record_mismatches": self.record_mismatches,
            "drifted_match_ids": self.drifted_match_ids,
            "repaired": self.repaired,
        }


def verify_ratings(
    session: Session,
    params: Optional[RatingParams] = None,
    repair: bool = False,
) -> VerificationReport:
    """
    Replay the match log and compare the result with each stored player.

    Both the rating and the record (matches played, wins, losses, draws,
    last match time) are checked. After matches were deleted from the log,
    ``repair=True`` brings every affected player back in line with the
    remaining matches; a player with none left is reset to the starting
    rating with an empty record.

    Args:
        session: Open session (the caller commits)
        params: Rating parameters the log was produced with
        repair: Overwrite mismatching stored values with the replayed ones

    Returns:
        VerificationReport listing every mismatch
    """
    params = params or RatingParams.from_settings()
    started = time.monotonic()

    replay: ReplayResult = replay_history(load_match_log(session), params=params)
    players = list(session.scalars(select(Player).order_by(Player.id)))
    stored = {p.id: p.current_rating for p in players}
    stored_records = {p.id: _stored_record(p) for p in players}

    report = VerificationReport(
        players_checked=len(players),
        matches_replayed=replay.matches_replayed,
        mismatches=replay.mismatches(stored),
        record_mismatches=replay.record_mismatches(stored_records),
        drifted_match_ids=[m.match_id for m in replay.drifted],
    )

    if report.consistent:
        logger.info(
            "Ratings verified: %d players, %d matches replayed, no mismatches",
            report.players_checked, report.matches_replayed,
        )
    else:
        for player_id, stored_rating, replayed in report.mismatches:
            logger.warning(
                "Player %s: stored rating %d, replayed %d", player_id, stored_rating, replayed,
            )
        for player_id in report.record_mismatches:
            logger.warning(
                "Player %s: stored record %s, replayed %s",
                player_id, stored_records[player_id], replay.record_for(player_id),
            )

    if repair and not report.consistent:
        by_id = {p.id: p for p in players}
        for player_id, _, replayed in report.mismatches:
            by_id[player_id].current_rating = replayed
        for player_id in report.record_mismatches:
            _apply_record(by_id[player_id], replay.record_for(player_id))
        report.repaired = True
        logger.info(
            "Repaired %d stored ratings and %d records",
            len(report.mismatches), len(report.record_mismatches),
        )

    problems = len(report.mismatches) + len(report.record_mismatches)
    session.add(
        UpdateLog(
            update_type="verify_ratings",
            details=report.to_dict(),
            success=report.consistent or report.repaired,
            error_message=None if report.consistent else f"{problems} mismatches",
            duration_seconds=_elapsed(started),
        )
    )
    session.flush()
    return report


def _stored_record(player: Player) -> PlayerRecord:
    return PlayerRecord(
        matches_played=player.matches_played,
        wins=player.wins,
        losses=player.losses,
        draws=player.draws,
        last_active_at=player.last_active_at,
    )


def _apply_record(player: Player, record: PlayerRecord) -> None:
    player.matches_played = record.matches_played
    player.wins = record.wins
    player.losses = record.losses
    player.draws = record.draws
    player.last_active_at = record.last_active_at


# =============================================================================
# System match backfill
# =============================================================================

@dataclass
class BackfillReport:
    """Result of creating match rows for orphaned system history entries."""
    entries_found: int = 0
    matches_created: int = 0
    dry_run: bool = False
    created: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries_found": self.entries_found,
            "matches_created": self.matches_created,
            "dry_run": self.dry_run,
            "created": self.created,
        }


def backfill_system_matches(
    session: Session,
    dry_run: bool = False,
    params: Optional[RatingParams] = None,
) -> BackfillReport:
    """
    Create DECAY / ACTIVITY_BONUS match rows for history entries that lack one.

    Older history rows for system events only carry their event key. For each
    such row a match against the sentinel opponent is created whose
    before-rating is the player's previous history entry (or the starting
    rating when there is none), and the history row is linked to it.

    Args:
        session: Open session (the caller commits)
        dry_run: Report what would be created without writing
        params: Supplies the starting rating
    """
    params = params or RatingParams.from_settings()
    started = time.monotonic()

    orphans = [
        entry for entry in session.scalars(
            select(RatingHistory)
            .where(RatingHistory.match_id.is_(None))
            .where(RatingHistory.event_key.is_not(None))
            .order_by(RatingHistory.player_id, RatingHistory.recorded_at, RatingHistory.id)
        )
        if is_system_event_key(entry.event_key)
    ]
    report = BackfillReport(entries_found=len(orphans), dry_run=dry_run)

    for entry in orphans:
        rating_before = _previous_rating(session, entry, params.starting_rating)
        kind = system_event_kind(entry.event_key)
        report.created.append({
            "history_id": entry.id,
            "player_id": entry.player_id,
            "kind": kind,
            "rating_before": rating_before,
            "rating_after": entry.rating,
            "played_at": entry.recorded_at.isoformat(),
        })
        if dry_run:
            continue

        match = Match(
            player_a_id=entry.player_id,
            player_b_id=None,
            winner=kind,
            rating_a_before=rating_before,
            rating_b_before=SYSTEM_OPPONENT_RATING,
            rating_a_after=entry.rating,
            rating_b_after=SYSTEM_OPPONENT_RATING,
            played_at=entry.recorded_at,
        )
        session.add(match)
        session.flush()
        entry.match_id = match.id
        report.matches_created += 1

    logger.info(
        "Backfill%s: %d orphaned system entries, %d matches created",
        " (dry run)" if dry_run else "", report.entries_found, report.matches_created,
    )

    if not dry_run:
        session.add(
            UpdateLog(
                update_type="backfill_system_matches",
                details=report.to_dict(),
                success=True,
                duration_seconds=_elapsed(started),
            )
        )
    session.flush()
    return report


def _previous_rating(session: Session, entry: RatingHistory, default: int) -> int:
    stmt = (
        select(RatingHistory.rating)
        .where(RatingHistory.player_id == entry.player_id)
        .where(
            (RatingHistory.recorded_at < entry.recorded_at)
            | ((RatingHistory.recorded_at == entry.recorded_at) & (RatingHistory.id < entry.id))
        )
        .order_by(RatingHistory.recorded_at.desc(), RatingHistory.id.desc())
        .limit(1)
    )
    rating = session.scalar(stmt)
    return default if rating is None else rating


def _elapsed(started: float) -> Decimal:
    return Decimal(str(round(time.monotonic() - started, 2)))
