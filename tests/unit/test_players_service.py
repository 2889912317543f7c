"""
Tests for player management and the read-side queries.
"""

from datetime import timedelta

import pytest

from knightrank.db.session import session_scope
from knightrank.elo.params import RatingParams
from knightrank.errors import NotFoundError, ValidationError
from knightrank.services.decay import run_decay_cycle
from knightrank.services.matches import record_match
from knightrank.services.players import (
    add_player,
    get_player,
    leaderboard,
    load_snapshot,
    player_matches,
    rating_series,
    recent_matches,
)


class TestAddPlayer:

    def test_starts_at_starting_rating(self, db_session):
        player = add_player(db_session, "Judit")

        assert player.id is not None
        assert player.current_rating == 1200
        assert player.matches_played == 0
        assert player.last_active_at is None
        assert player.version == 1

    def test_name_is_trimmed(self, db_session):
        assert add_player(db_session, "  Garry  ").name == "Garry"

    def test_custom_starting_rating(self, db_session):
        player = add_player(db_session, "Hikaru", params=RatingParams(starting_rating=1500))
        assert player.current_rating == 1500

    @pytest.mark.parametrize("name", ["", "   ", None, "x" * 101])
    def test_invalid_name(self, db_session, name):
        with pytest.raises(ValidationError):
            add_player(db_session, name)

    def test_duplicate_name(self, db_session):
        add_player(db_session, "Magnus")
        with pytest.raises(ValidationError, match="already exists"):
            add_player(db_session, "Magnus")


class TestQueries:

    def test_get_player_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            get_player(db_session, 12345)

    def test_leaderboard_order(self, make_player, db_session):
        make_player("b", rating=1300)
        make_player("a", rating=1300)
        make_player("c", rating=1450)

        names = [p.name for p in leaderboard(db_session)]

        assert names == ["c", "a", "b"]

    def test_load_snapshot(self, make_player, db_session, now):
        first = make_player(rating=1300, last_active_at=now)
        second = make_player(rating=1100)

        snapshot = load_snapshot(db_session)

        assert list(snapshot) == [first.id, second.id]
        assert snapshot[first.id].current_rating == 1300
        assert snapshot[first.id].last_active_at == now

        only_second = load_snapshot(db_session, [second.id], for_update=True)
        assert list(only_second) == [second.id]

    def test_rating_series_without_matches(self, session_factory):
        with session_scope(session_factory) as session:
            player = add_player(session, "Solo")

        with session_scope(session_factory) as session:
            series = rating_series(session, player.id)

        assert len(series) == 1
        assert series[0][1] == 1200

    def test_rating_series_follows_matches(self, session_factory, now):
        with session_scope(session_factory) as session:
            a = add_player(session, "Ana")
            b = add_player(session, "Ben")

        record_match(session_factory, a.id, b.id, "A", now=now)
        record_match(session_factory, a.id, b.id, "B", now=now.replace(hour=13))

        with session_scope(session_factory) as session:
            series = rating_series(session, a.id)

        assert [rating for _, rating in series] == [1200, 1216, 1199]


class TestMatchHistory:

    @pytest.fixture
    def season(self, session_factory, now):
        """Three games and a decay run; Cat is idle long enough to decay."""
        with session_scope(session_factory) as session:
            ana = add_player(session, "Ana")
            ben = add_player(session, "Ben")
            cat = add_player(session, "Cat")

        start = now - timedelta(days=30)
        first = record_match(session_factory, ana.id, cat.id, "A", now=start)
        second = record_match(session_factory, ana.id, ben.id, "DRAW", now=now - timedelta(days=2))
        third = record_match(session_factory, ben.id, ana.id, "A", now=now - timedelta(days=2))
        run_decay_cycle(session_factory, now=now)
        return {
            "players": (ana, ben, cat),
            "match_ids": (first.match_id, second.match_id, third.match_id),
        }

    def test_recent_matches_newest_first(self, session_factory, season):
        first, second, third = season["match_ids"]

        with session_scope(session_factory) as session:
            matches = recent_matches(session)
            winners = [m.winner for m in matches]
            game_ids = [m.id for m in matches if m.player_b_id is not None]

        # The decay run is the latest event; same-time games are ordered by id
        assert winners[0] in ("DECAY", "ACTIVITY_BONUS")
        assert "DECAY" in winners
        assert game_ids == [third, second, first]

    def test_recent_matches_limit(self, session_factory, season):
        with session_scope(session_factory) as session:
            matches = recent_matches(session, limit=2)
            assert len(matches) == 2

    def test_player_matches_as_either_side(self, session_factory, season):
        ana, ben, cat = season["players"]
        first, second, third = season["match_ids"]

        with session_scope(session_factory) as session:
            ben_games = [m.id for m in player_matches(session, ben.id) if m.player_b_id]
            cat_matches = player_matches(session, cat.id)
            cat_events = [(m.winner, m.player_b_id) for m in cat_matches]
            names = {m.player_a.name for m in cat_matches}

        assert ben_games == [third, second]
        # Cat's decay (as player A against nobody) comes before the old game
        assert cat_events == [("DECAY", None), ("A", cat.id)]
        assert names == {"Ana", "Cat"}

    def test_player_matches_unknown_player(self, db_session):
        with pytest.raises(NotFoundError):
            player_matches(db_session, 4242)
