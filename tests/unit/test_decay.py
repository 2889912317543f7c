"""
Unit tests for per-player inactivity decay and system event keys.
"""

from datetime import datetime, timedelta, timezone

import pytest

from knightrank.elo.decay import (
    calculate_decay,
    calculate_player_decay,
    inactive_days_between,
    is_system_event_key,
    system_event_key,
    system_event_kind,
)
from knightrank.elo.params import RatingParams

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def days_ago(days, hours=0):
    return NOW - timedelta(days=days, hours=hours)


class TestCalculateDecay:
    """Tests for calculate_decay()."""

    def test_never_played(self):
        result = calculate_decay(1500, None, NOW)

        assert not result.should_decay
        assert result.new_rating == 1500
        assert result.decay_amount == 0

    def test_active_player_does_not_decay(self):
        result = calculate_decay(1500, days_ago(3), NOW)

        assert not result.should_decay
        assert result.inactive_days == 3

    def test_threshold_day_itself_does_not_decay(self):
        result = calculate_decay(1500, days_ago(7), NOW)

        assert not result.should_decay
        assert result.new_rating == 1500

    def test_first_day_past_threshold(self):
        result = calculate_decay(1500, days_ago(8), NOW)

        assert result.should_decay
        assert result.decay_amount == 5
        assert result.new_rating == 1495

    def test_partial_days_are_truncated(self):
        # 7 days 23 hours is still 7 whole days
        result = calculate_decay(1500, days_ago(7, hours=23), NOW)
        assert not result.should_decay

    def test_forty_five_days(self):
        # (45 - 7) // 7 = 5 full periods past the threshold -> 6 * 5 points
        result = calculate_decay(1500, days_ago(45), NOW)

        assert result.new_rating == 1470
        assert result.decay_amount == 30
        assert result.inactive_days == 45

    @pytest.mark.parametrize(
        "days,amount",
        [(8, 5), (13, 5), (14, 10), (20, 10), (21, 15), (35, 25)],
    )
    def test_decay_steps_per_period(self, days, amount):
        assert calculate_decay(1500, days_ago(days), NOW).decay_amount == amount

    def test_clamped_at_floor(self):
        result = calculate_decay(1002, days_ago(90), NOW, floor=1000)

        assert result.new_rating == 1000
        assert result.decay_amount == 2
        assert result.should_decay

    def test_at_floor_does_not_decay(self):
        result = calculate_decay(1000, days_ago(90), NOW, floor=1000)

        assert not result.should_decay
        assert result.new_rating == 1000

    def test_below_absolute_minimum_uses_dynamic_floor(self):
        # A player already below 1000 sets the floor; nobody drops under it
        result = calculate_decay(980, days_ago(30), NOW, floor=950)
        assert result.new_rating == 960

        result = calculate_decay(955, days_ago(30), NOW, floor=950)
        assert result.new_rating == 950

    def test_default_floor_is_absolute_minimum(self):
        result = calculate_decay(1010, days_ago(60), NOW)
        assert result.new_rating == 1000

    def test_naive_and_aware_times_mix(self):
        naive_last_active = days_ago(45).replace(tzinfo=None)
        assert calculate_decay(1500, naive_last_active, NOW).new_rating == 1470

    def test_future_last_active_is_clamped(self):
        result = calculate_decay(1500, NOW + timedelta(days=2), NOW)

        assert result.inactive_days == 0
        assert not result.should_decay

    def test_repeated_runs_at_same_time_do_not_stack(self):
        """Same inputs, same answer: decay is a pure function of elapsed time."""
        first = calculate_decay(1500, days_ago(45), NOW)
        second = calculate_decay(1500, days_ago(45), NOW)
        assert first == second

    def test_custom_params(self):
        params = RatingParams(
            inactivity_threshold_days=14,
            decay_points_per_period=10,
            decay_period_days=7,
        )
        assert not calculate_decay(1500, days_ago(14), NOW, params=params).should_decay
        assert calculate_decay(1500, days_ago(21), NOW, params=params).decay_amount == 20

    def test_alias(self):
        assert calculate_player_decay is calculate_decay


class TestInactiveDays:

    def test_whole_days(self):
        assert inactive_days_between(days_ago(10), NOW) == 10

    def test_truncates(self):
        assert inactive_days_between(days_ago(0, hours=23), NOW) == 0


class TestSystemEventKeys:
    """Tests for DECAY-<ms> / ACTIVITY_BONUS-<ms> identifiers."""

    def test_decay_key(self):
        at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert system_event_key("DECAY", at) == "DECAY-1704067200000"

    def test_bonus_key_from_naive_time(self):
        at = datetime(2024, 1, 1)
        assert system_event_key("ACTIVITY_BONUS", at) == "ACTIVITY_BONUS-1704067200000"

    def test_kind_round_trip(self):
        key = system_event_key("ACTIVITY_BONUS", NOW)
        assert system_event_kind(key) == "ACTIVITY_BONUS"
        assert is_system_event_key(key)

    @pytest.mark.parametrize("key", [None, "", "MATCH-123", "DECAYED-1", "decay-1"])
    def test_non_system_keys(self, key):
        assert system_event_kind(key) is None
        assert not is_system_event_key(key)

    def test_unknown_kind(self):
        with pytest.raises(KeyError):
            system_event_key("A", NOW)
