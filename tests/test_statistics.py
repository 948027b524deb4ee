"""Tests for the statistics engine."""

from datetime import timedelta

import pytest

from conftest import TODAY, make_habit
from habit_coach.domain import HabitStatistics
from habit_coach.services.statistics import (
    compute_statistics,
    current_streak_for,
    longest_streak_for,
    weekly_completion_rate,
    weekly_daily_rates,
    week_start,
)


def days_ago(*offsets):
    return [TODAY - timedelta(days=n) for n in offsets]


class TestCurrentStreak:
    def test_counts_back_from_today(self):
        assert current_streak_for(set(days_ago(0, 1, 2)), TODAY) == 3

    def test_grace_day_when_today_not_done_yet(self):
        assert current_streak_for(set(days_ago(1, 2)), TODAY) == 2

    def test_gap_of_two_days_breaks_streak(self):
        assert current_streak_for(set(days_ago(2, 3, 4)), TODAY) == 0

    def test_empty(self):
        assert current_streak_for(set(), TODAY) == 0


class TestLongestStreak:
    def test_empty_history(self):
        assert longest_streak_for(set()) == 0

    def test_single_date(self):
        assert longest_streak_for(set(days_ago(40))) == 1

    def test_longest_run_wins(self):
        assert longest_streak_for(set(days_ago(0, 1, 5, 6, 7, 20))) == 3


class TestWeeklyCompletionRate:
    def test_no_habits(self):
        assert weekly_completion_rate([], TODAY) == 0.0

    def test_new_habit_window_is_clamped_to_creation(self):
        young = make_habit("Young", created=TODAY - timedelta(days=1), done=days_ago(0, 1))
        old = make_habit("Old", created=TODAY - timedelta(days=60))
        # young: 2 possible / 2 actual, old: 7 possible / 0 actual
        assert weekly_completion_rate([young, old], TODAY) == pytest.approx(2 / 9)

    def test_habit_created_today_counts_one_possible_day(self):
        fresh = make_habit("Fresh", created=TODAY)
        old = make_habit("Old", created=TODAY - timedelta(days=60), done=days_ago(*range(7)))
        assert weekly_completion_rate([fresh, old], TODAY) == pytest.approx(7 / 8)

    def test_completions_outside_window_ignored(self):
        habit = make_habit(created=TODAY - timedelta(days=60), done=days_ago(7, 8, 9))
        assert weekly_completion_rate([habit], TODAY) == 0.0


class TestWeeklyDailyRates:
    def test_future_days_are_zero(self):
        assert TODAY.weekday() == 3
        habit = make_habit(created=TODAY - timedelta(days=30), done=days_ago(*range(30)))
        rates = weekly_daily_rates([habit], TODAY)
        assert rates == (1.0, 1.0, 1.0, 1.0, 0.0, 0.0, 0.0)

    def test_only_eligible_habits_in_denominator(self):
        monday = week_start(TODAY)
        wednesday = monday + timedelta(days=2)
        old = make_habit("Old", created=TODAY - timedelta(days=30), done=[monday])
        new = make_habit("New", created=wednesday, done=[wednesday])
        rates = weekly_daily_rates([old, new], TODAY)
        assert rates[0] == 1.0
        assert rates[1] == 0.0
        assert rates[2] == 0.5

    def test_always_seven_entries(self):
        assert len(weekly_daily_rates([], TODAY)) == 7


class TestComputeStatistics:
    def test_empty_habit_list(self):
        stats = compute_statistics([], TODAY)
        assert stats == HabitStatistics()
        assert stats.current_streak == 0
        assert stats.weekly_daily_rates == (0.0,) * 7

    def test_full_week(self):
        habit = make_habit(created=TODAY - timedelta(days=30), done=days_ago(*range(10)))
        stats = compute_statistics([habit], TODAY)
        assert stats.total_habits == 1
        assert stats.completed_today == 1
        assert stats.total_completed == 10
        assert stats.current_streak == 10
        assert stats.longest_streak == 10
        assert stats.weekly_completion_rate == 1.0
        assert stats.weekly_daily_rates == (1.0, 1.0, 1.0, 1.0, 0.0, 0.0, 0.0)

    def test_streak_uses_union_of_habits(self):
        a = make_habit("A", done=days_ago(0, 2))
        b = make_habit("B", done=days_ago(1, 3))
        stats = compute_statistics([a, b], TODAY)
        assert stats.current_streak == 4
        assert stats.completed_today == 1
        assert stats.total_completed == 4
