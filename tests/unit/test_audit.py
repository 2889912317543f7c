"""
Tests for rating verification (log replay) and the system match backfill.
"""

from datetime import timedelta

from sqlalchemy import delete, select

from knightrank.db.models import Match, Player, RatingHistory, UpdateLog
from knightrank.db.session import session_scope
from knightrank.elo.decay import system_event_key
from knightrank.services.audit import backfill_system_matches, load_match_log, verify_ratings
from knightrank.services.decay import run_decay_cycle
from knightrank.services.matches import record_match
from knightrank.services.players import add_player


def add_players(session_factory, *names):
    with session_scope(session_factory) as session:
        return [add_player(session, name) for name in names]


def play_season(session_factory, now):
    """A month of matches followed by one decay run."""
    a, b, c, d = add_players(session_factory, "Ana", "Ben", "Cat", "Dan")
    start = now - timedelta(days=30)

    record_match(session_factory, a.id, b.id, "A", now=start)
    record_match(session_factory, c.id, d.id, "B", now=start + timedelta(hours=1))
    record_match(session_factory, a.id, c.id, "DRAW", now=start + timedelta(hours=2))
    record_match(session_factory, a.id, b.id, "B", now=now - timedelta(days=1))
    run_decay_cycle(session_factory, now=now)
    return a, b, c, d


class TestVerifyRatings:

    def test_consistent_after_matches_and_decay(self, session_factory, now):
        play_season(session_factory, now)

        with session_scope(session_factory) as session:
            log = load_match_log(session)
            report = verify_ratings(session)

        assert any(m.winner == "DECAY" for m in log)
        assert any(m.winner == "ACTIVITY_BONUS" for m in log)
        assert report.consistent
        assert report.players_checked == 4
        assert report.matches_replayed == len(log)
        assert report.drifted_match_ids == []

    def test_detects_and_repairs_drift(self, session_factory, now):
        a, *_ = play_season(session_factory, now)

        with session_scope(session_factory) as session:
            player = session.get(Player, a.id)
            correct = player.current_rating
            player.current_rating = correct + 40

        with session_scope(session_factory) as session:
            report = verify_ratings(session)
        assert not report.consistent
        assert report.mismatches == [(a.id, correct + 40, correct)]

        with session_scope(session_factory) as session:
            repaired = verify_ratings(session, repair=True)
        assert repaired.repaired

        with session_scope(session_factory) as session:
            assert session.get(Player, a.id).current_rating == correct
            assert verify_ratings(session).consistent

    def test_repair_rebuilds_records_after_match_delete(self, session_factory, now):
        a, b = add_players(session_factory, "Ana", "Ben")
        first = record_match(session_factory, a.id, b.id, "A", now=now - timedelta(days=2))
        second = record_match(session_factory, a.id, b.id, "A", now=now - timedelta(days=1))

        with session_scope(session_factory) as session:
            session.execute(delete(RatingHistory).where(RatingHistory.match_id == second.match_id))
            session.execute(delete(Match).where(Match.id == second.match_id))

        with session_scope(session_factory) as session:
            report = verify_ratings(session, repair=True)
        assert report.record_mismatches == [a.id, b.id]
        assert report.repaired

        with session_scope(session_factory) as session:
            ana = session.get(Player, a.id)
            ben = session.get(Player, b.id)
            assert ana.current_rating == first.rating_a_after
            assert (ana.matches_played, ana.wins, ana.losses, ana.draws) == (1, 1, 0, 0)
            assert (ben.matches_played, ben.wins, ben.losses, ben.draws) == (1, 0, 1, 0)
            assert ana.last_active_at == now - timedelta(days=2)
            assert verify_ratings(session).consistent

    def test_repair_resets_player_without_matches(self, session_factory, now):
        a, b = add_players(session_factory, "Ana", "Ben")
        receipt = record_match(session_factory, a.id, b.id, "B", now=now)

        with session_scope(session_factory) as session:
            session.execute(delete(RatingHistory).where(RatingHistory.match_id == receipt.match_id))
            session.execute(delete(Match).where(Match.id == receipt.match_id))

        with session_scope(session_factory) as session:
            verify_ratings(session, repair=True)

        with session_scope(session_factory) as session:
            ben = session.get(Player, b.id)
            assert ben.current_rating == 1200
            assert ben.matches_played == 0
            assert ben.last_active_at is None

    def test_writes_update_log(self, session_factory, now):
        add_players(session_factory, "Solo")

        with session_scope(session_factory) as session:
            verify_ratings(session)

        with session_scope(session_factory) as session:
            entry = session.scalars(select(UpdateLog)).one()
            assert entry.update_type == "verify_ratings"
            assert entry.success
            assert entry.details["consistent"] is True


class TestBackfillSystemMatches:

    def _legacy_history(self, session_factory, now):
        """A player whose decay and bonus only left history entries behind."""
        [player] = add_players(session_factory, "Legacy")
        decay_at = now - timedelta(days=14)
        bonus_at = now - timedelta(days=7)

        with session_scope(session_factory) as session:
            session.add_all([
                RatingHistory(
                    player_id=player.id,
                    rating=1190,
                    recorded_at=decay_at,
                    event_key=system_event_key("DECAY", decay_at),
                ),
                RatingHistory(
                    player_id=player.id,
                    rating=1195,
                    recorded_at=bonus_at,
                    event_key=system_event_key("ACTIVITY_BONUS", bonus_at),
                ),
                RatingHistory(
                    player_id=player.id,
                    rating=1195,
                    recorded_at=bonus_at,
                    event_key="MANUAL-FIX",
                ),
            ])
            session.get(Player, player.id).current_rating = 1195
        return player

    def test_creates_missing_matches(self, session_factory, now):
        player = self._legacy_history(session_factory, now)

        with session_scope(session_factory) as session:
            report = backfill_system_matches(session)

        assert report.entries_found == 2
        assert report.matches_created == 2

        with session_scope(session_factory) as session:
            matches = session.scalars(select(Match).order_by(Match.played_at)).all()
            assert [m.winner for m in matches] == ["DECAY", "ACTIVITY_BONUS"]
            assert [(m.rating_a_before, m.rating_a_after) for m in matches] == [
                (1200, 1190),
                (1190, 1195),
            ]
            assert all(m.player_b_id is None and m.player_a_id == player.id for m in matches)

            orphans = session.scalars(
                select(RatingHistory)
                .where(RatingHistory.match_id.is_(None))
                .where(RatingHistory.event_key.like("DECAY-%"))
            ).all()
            assert orphans == []

            # The completed log now replays to the stored rating
            assert verify_ratings(session).consistent

    def test_dry_run_writes_nothing(self, session_factory, now):
        self._legacy_history(session_factory, now)

        with session_scope(session_factory) as session:
            report = backfill_system_matches(session, dry_run=True)

        assert report.entries_found == 2
        assert report.matches_created == 0
        assert [row["kind"] for row in report.created] == ["DECAY", "ACTIVITY_BONUS"]
        with session_scope(session_factory) as session:
            assert session.scalars(select(Match)).all() == []
            assert session.scalars(select(UpdateLog)).all() == []

    def test_second_run_finds_nothing(self, session_factory, now):
        self._legacy_history(session_factory, now)

        with session_scope(session_factory) as session:
            backfill_system_matches(session)
        with session_scope(session_factory) as session:
            report = backfill_system_matches(session)

        assert report.entries_found == 0
