"""Streak-rescue detection.

Looks at the same weekday over the previous four weeks. Weekly-cadence habits
("gym every Tuesday") show up here long before a flat 7-day lookback notices.
Habits with fewer than two eligible data points are never flagged.
"""

from datetime import date, timedelta, timezone, tzinfo

from habit_coach.domain import Habit, HabitRiskAssessment

WINDOW_WEEKS = 4
MIN_WINDOW_SIZE = 2
AT_RISK_THRESHOLD = 0.5


def assess_habit(
    habit: Habit, today: date, tz: tzinfo = timezone.utc
) -> HabitRiskAssessment:
    created = habit.created_date(tz)
    window = [
        today - timedelta(weeks=weeks_ago)
        for weeks_ago in range(1, WINDOW_WEEKS + 1)
    ]
    window = [d for d in window if d >= created]

    if len(window) < MIN_WINDOW_SIZE:
        return HabitRiskAssessment(habit=habit, miss_rate=0.0, is_at_risk=False)

    missed = sum(1 for d in window if not habit.is_completed_on(d))
    miss_rate = missed / len(window)

    return HabitRiskAssessment(
        habit=habit,
        miss_rate=miss_rate,
        is_at_risk=miss_rate >= AT_RISK_THRESHOLD,
    )


def detect_at_risk(
    habits: list[Habit], today: date, tz: tzinfo = timezone.utc
) -> list[HabitRiskAssessment]:
    assessments = (assess_habit(habit, today, tz) for habit in habits)
    return [a for a in assessments if a.is_at_risk]
