"""Plain domain values passed between the store, the pure engines and the
insight services. ORM rows never leave the repositories; these do."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from enum import Enum

DATE_FORMAT = "%Y-%m-%d"


def format_day(d: date) -> str:
    return d.strftime(DATE_FORMAT)


def parse_day(value: str) -> date:
    return datetime.strptime(value, DATE_FORMAT).date()


def epoch_millis_to_date(millis: int, tz: tzinfo = timezone.utc) -> date:
    return datetime.fromtimestamp(millis / 1000, tz=tz).date()


@dataclass(frozen=True)
class Habit:
    id: str
    title: str
    description: str | None = None
    created_at: int = 0
    completed_dates: frozenset[str] = frozenset()
    is_completed: bool = False
    streak: int = 0
    longest_streak: int = 0

    def created_date(self, tz: tzinfo = timezone.utc) -> date:
        return epoch_millis_to_date(self.created_at, tz)

    def is_completed_on(self, day: date) -> bool:
        return format_day(day) in self.completed_dates

    def is_completed_today(self, today: date) -> bool:
        return self.is_completed_on(today)


@dataclass(frozen=True)
class HabitStatistics:
    current_streak: int = 0
    longest_streak: int = 0
    weekly_completion_rate: float = 0.0
    weekly_daily_rates: tuple[float, ...] = (0.0,) * 7
    total_habits: int = 0
    completed_today: int = 0
    total_completed: int = 0


@dataclass(frozen=True)
class HabitRiskAssessment:
    habit: Habit
    miss_rate: float
    is_at_risk: bool


class InsightSource(str, Enum):
    AI = "AI"
    FALLBACK = "FALLBACK"


@dataclass(frozen=True)
class WeeklyInsight:
    week_of: date
    summary: str
    top_performing_habit: str | None
    most_at_risk_habit: str | None
    recommendation: str
    overall_score: int
    source: InsightSource
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class DailyNudge:
    date: date
    message: str
    source: InsightSource
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
