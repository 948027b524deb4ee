"""Statistics engine: streaks and completion rates derived from raw history.

Everything here is pure and takes ``today`` explicitly. Creation dates are
resolved in ``tz`` so a habit never counts days before it existed.
"""

from collections.abc import Iterable
from datetime import date, timedelta, timezone, tzinfo

from habit_coach.domain import Habit, HabitStatistics, format_day, parse_day

WEEK_DAYS = 7


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def _union_dates(habits: Iterable[Habit]) -> set[date]:
    return {parse_day(d) for habit in habits for d in habit.completed_dates}


def current_streak_for(days: set[date], today: date) -> int:
    """Consecutive completed days ending today.

    A day is not considered missed until it is over: when today has no
    completion but yesterday does, counting starts from yesterday.
    """
    check = today
    if check not in days:
        check = today - timedelta(days=1)
    streak = 0
    while check in days:
        streak += 1
        check -= timedelta(days=1)
    return streak


def current_streak_from_strings(completed_dates: Iterable[str], today: date) -> int:
    return current_streak_for({parse_day(d) for d in completed_dates}, today)


def longest_streak_for(days: set[date]) -> int:
    if not days:
        return 0
    ordered = sorted(days)
    longest = current = 1
    for prev, nxt in zip(ordered, ordered[1:]):
        if (nxt - prev).days == 1:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def weekly_completion_rate(
    habits: list[Habit], today: date, tz: tzinfo = timezone.utc
) -> float:
    if not habits:
        return 0.0

    window_start = today - timedelta(days=WEEK_DAYS - 1)
    possible = 0
    actual = 0

    for habit in habits:
        start = max(habit.created_date(tz), window_start)
        possible += max((today - start).days + 1, 1)
        actual += sum(
            1 for d in habit.completed_dates if start <= parse_day(d) <= today
        )

    if possible == 0:
        return 0.0
    return min(max(actual / possible, 0.0), 1.0)


def weekly_daily_rates(
    habits: list[Habit], today: date, tz: tzinfo = timezone.utc
) -> tuple[float, ...]:
    monday = week_start(today)
    rates = []

    for offset in range(WEEK_DAYS):
        day = monday + timedelta(days=offset)
        if day > today:
            rates.append(0.0)
            continue

        eligible = [h for h in habits if h.created_date(tz) <= day]
        if not eligible:
            rates.append(0.0)
            continue

        day_key = format_day(day)
        done = sum(1 for h in eligible if day_key in h.completed_dates)
        rates.append(min(done / len(eligible), 1.0))

    return tuple(rates)


def compute_statistics(
    habits: list[Habit], today: date, tz: tzinfo = timezone.utc
) -> HabitStatistics:
    if not habits:
        return HabitStatistics()

    all_days = _union_dates(habits)

    return HabitStatistics(
        current_streak=current_streak_for(all_days, today),
        longest_streak=longest_streak_for(all_days),
        weekly_completion_rate=weekly_completion_rate(habits, today, tz),
        weekly_daily_rates=weekly_daily_rates(habits, today, tz),
        total_habits=len(habits),
        completed_today=sum(1 for h in habits if h.is_completed_today(today)),
        total_completed=sum(len(h.completed_dates) for h in habits),
    )
