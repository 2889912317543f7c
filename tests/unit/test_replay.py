"""
Unit tests for replaying the match log from scratch.
"""

from datetime import datetime, timedelta

from knightrank.elo.calculator import match_outcome
from knightrank.elo.replay import HistoricalMatch, PlayerRecord, replay_history

T0 = datetime(2026, 1, 5, 18, 0, 0)


def build_log(results):
    """Rate ``(a, b, winner)`` tuples in order and return the stored log."""
    ratings = {}
    log = []
    for i, (a, b, winner) in enumerate(results):
        ra, rb = ratings.get(a, 1200), ratings.get(b, 1200)
        outcome = match_outcome(ra, rb, winner)
        ratings[a], ratings[b] = outcome.rating_a_after, outcome.rating_b_after
        log.append(
            HistoricalMatch(
                match_id=i + 1,
                player_a_id=a,
                player_b_id=b,
                winner=winner,
                played_at=T0 + timedelta(hours=i),
                rating_a_before=ra,
                rating_b_before=rb,
                rating_a_after=outcome.rating_a_after,
                rating_b_after=outcome.rating_b_after,
            )
        )
    return log, ratings


def system_event(match_id, player_id, before, after, at, kind="DECAY"):
    return HistoricalMatch(
        match_id=match_id,
        player_a_id=player_id,
        player_b_id=None,
        winner=kind,
        played_at=at,
        rating_a_before=before,
        rating_b_before=0,
        rating_a_after=after,
        rating_b_after=0,
    )


RESULTS = [
    ("ana", "ben", "A"),
    ("cat", "dan", "B"),
    ("ana", "cat", "DRAW"),
    ("ben", "dan", "A"),
    ("dan", "ana", "A"),
]


class TestReplayHistory:

    def test_replay_reproduces_stored_ratings(self):
        log, ratings = build_log(RESULTS)

        result = replay_history(log)

        assert result.ratings == ratings
        assert result.matches_replayed == len(RESULTS)
        assert result.drifted == []
        assert result.mismatches(ratings) == []

    def test_input_order_does_not_matter(self):
        log, ratings = build_log(RESULTS)

        result = replay_history(reversed(log))

        assert result.ratings == ratings

    def test_deleting_a_match_changes_later_ratings(self):
        log, ratings = build_log(RESULTS)
        without_first = log[1:]

        result = replay_history(without_first)

        # Match 3 (ana vs cat) was stored with ana's post-win rating
        assert 3 in {m.match_id for m in result.drifted}
        assert result.mismatches(ratings) != []

    def test_system_events_apply_recorded_delta(self):
        log, ratings = build_log(RESULTS[:1])
        decay_at = T0 + timedelta(days=20)
        ben_before = ratings["ben"]
        log.append(system_event(99, "ben", ben_before, ben_before - 10, decay_at))
        log.append(
            system_event(100, "ana", ratings["ana"], ratings["ana"] + 5, decay_at, "ACTIVITY_BONUS")
        )

        result = replay_history(log)

        assert result.rating_for("ben") == ben_before - 10
        assert result.rating_for("ana") == ratings["ana"] + 5
        assert result.drifted == []

    def test_unknown_player_uses_starting_rating(self):
        result = replay_history([], starting_rating=1500)

        assert result.rating_for("nobody") == 1500
        assert result.mismatches({"x": 1500, "y": 1490}) == [("y", 1490, 1500)]


class TestReplayedRecords:

    def test_records_follow_player_matches(self):
        log, _ = build_log(RESULTS)

        result = replay_history(log)

        # ana: beat ben, drew cat, lost to dan
        assert result.record_for("ana") == PlayerRecord(
            matches_played=3, wins=1, losses=1, draws=1, last_active_at=T0 + timedelta(hours=4),
        )
        assert result.record_for("dan") == PlayerRecord(
            matches_played=3, wins=2, losses=1, draws=0, last_active_at=T0 + timedelta(hours=4),
        )

    def test_system_events_are_not_activity(self):
        log, ratings = build_log(RESULTS[:1])
        log.append(system_event(99, "ben", ratings["ben"], ratings["ben"] - 10, T0 + timedelta(days=20)))

        record = replay_history(log).record_for("ben")

        assert record.matches_played == 1
        assert record.last_active_at == T0

    def test_record_mismatches(self):
        log, _ = build_log(RESULTS[:1])
        result = replay_history(log)

        stored = {
            "ana": PlayerRecord(matches_played=1, wins=1, last_active_at=T0),
            "ben": PlayerRecord(matches_played=2, losses=2, last_active_at=T0),
            "nobody": PlayerRecord(),
        }

        assert result.record_mismatches(stored) == ["ben"]
