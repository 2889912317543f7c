"""
Tests for the match service (atomic recording with retry on conflicts).
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm.exc import StaleDataError

from knightrank.db.models import Match, Player, RatingHistory
from knightrank.db.session import session_scope
from knightrank.errors import ConcurrencyConflict, NotFoundError, ValidationError
from knightrank.services import matches as match_service
from knightrank.services.matches import record_match


def count(session_factory, model):
    with session_scope(session_factory) as session:
        return session.scalar(select(func.count()).select_from(model))


class TestRecordMatch:

    def test_persists_match_players_and_history(self, session_factory, make_player, now):
        low = make_player("Low", rating=1300)
        high = make_player("High", rating=1500)

        receipt = record_match(session_factory, low.id, high.id, "A", now=now)

        assert receipt.rating_a_after == 1324
        assert receipt.rating_b_after == 1476
        assert receipt.delta_a == 24
        assert receipt.attempts == 1
        assert receipt.player_a_name == "Low"

        with session_scope(session_factory) as session:
            a = session.get(Player, low.id)
            b = session.get(Player, high.id)
            assert (a.current_rating, a.wins, a.matches_played) == (1324, 1, 1)
            assert (b.current_rating, b.losses, b.matches_played) == (1476, 1, 1)
            assert a.last_active_at == now
            assert b.last_active_at == now
            assert a.version == 2
            assert a.win_rate == 1.0
            assert b.win_rate == 0.0

            match = session.get(Match, receipt.match_id)
            assert match.winner == "A"
            assert (match.rating_a_before, match.rating_b_before) == (1300, 1500)
            assert match.played_at == now

            history = session.scalars(
                select(RatingHistory).where(RatingHistory.match_id == match.id)
            ).all()
            assert sorted(h.rating for h in history) == [1324, 1476]
            assert all(h.event_key is None for h in history)

    def test_draw(self, session_factory, make_player, now):
        a = make_player()
        b = make_player()

        receipt = record_match(session_factory, a.id, b.id, "DRAW", now=now)

        assert receipt.delta_a == 0
        with session_scope(session_factory) as session:
            assert session.get(Player, a.id).draws == 1
            assert session.get(Player, b.id).draws == 1

    def test_sequential_matches_build_on_each_other(self, session_factory, make_player, now):
        a = make_player()
        b = make_player()

        first = record_match(session_factory, a.id, b.id, "A", now=now)
        second = record_match(session_factory, a.id, b.id, "A", now=now)

        assert second.rating_a_before == first.rating_a_after
        assert second.rating_b_before == first.rating_b_after

    def test_validation_error_writes_nothing(self, session_factory, make_player):
        a = make_player()

        with pytest.raises(ValidationError):
            record_match(session_factory, a.id, a.id, "A")
        with pytest.raises(ValidationError):
            record_match(session_factory, a.id, None, "A")

        assert count(session_factory, Match) == 0

    def test_unknown_player(self, session_factory, make_player):
        a = make_player()

        with pytest.raises(NotFoundError):
            record_match(session_factory, a.id, 999, "B")

        assert count(session_factory, Match) == 0
        assert count(session_factory, RatingHistory) == 0


class TestConcurrency:

    def test_retries_after_conflict(self, session_factory, make_player, now, monkeypatch):
        a = make_player()
        b = make_player()
        real_apply = match_service._apply_match
        calls = {"n": 0}

        def flaky_apply(session, *args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise StaleDataError("players row version changed")
            return real_apply(session, *args, **kwargs)

        monkeypatch.setattr(match_service, "_apply_match", flaky_apply)

        receipt = record_match(session_factory, a.id, b.id, "A", now=now)

        assert receipt.attempts == 2
        assert count(session_factory, Match) == 1
        with session_scope(session_factory) as session:
            assert session.get(Player, a.id).current_rating == 1216

    def test_gives_up_after_max_retries(self, session_factory, make_player, monkeypatch):
        a = make_player()
        b = make_player()
        calls = {"n": 0}

        def always_stale(session, *args, **kwargs):
            calls["n"] += 1
            raise StaleDataError("players row version changed")

        monkeypatch.setattr(match_service, "_apply_match", always_stale)

        with pytest.raises(ConcurrencyConflict):
            record_match(session_factory, a.id, b.id, "A", max_retries=2)

        assert calls["n"] == 2
        assert count(session_factory, Match) == 0

    def test_not_found_is_not_retried(self, session_factory, make_player, monkeypatch):
        a = make_player()
        real_apply = match_service._apply_match
        calls = {"n": 0}

        def counting_apply(session, *args, **kwargs):
            calls["n"] += 1
            return real_apply(session, *args, **kwargs)

        monkeypatch.setattr(match_service, "_apply_match", counting_apply)

        with pytest.raises(NotFoundError):
            record_match(session_factory, a.id, 999, "A", max_retries=5)

        assert calls["n"] == 1

    def test_failed_attempt_is_rolled_back(self, session_factory, make_player, now, monkeypatch):
        """A conflict after the writes were flushed must leave no trace."""
        a = make_player()
        b = make_player()
        real_apply = match_service._apply_match
        calls = {"n": 0}

        def fail_after_write(session, *args, **kwargs):
            calls["n"] += 1
            receipt = real_apply(session, *args, **kwargs)
            if calls["n"] == 1:
                raise StaleDataError("players row version changed")
            return receipt

        monkeypatch.setattr(match_service, "_apply_match", fail_after_write)

        receipt = record_match(session_factory, a.id, b.id, "A", now=now)

        assert receipt.attempts == 2
        assert count(session_factory, Match) == 1
        assert count(session_factory, RatingHistory) == 2
        with session_scope(session_factory) as session:
            player = session.get(Player, a.id)
            assert player.current_rating == 1216
            assert player.matches_played == 1
