"""Shared fixtures: a throwaway SQLite database and AI stand-ins."""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from habit_coach.domain import (
    DailyNudge, Habit, InsightSource, WeeklyInsight, format_day,
)
from habit_coach.models import Base

# Thursday
TODAY = date(2026, 10, 15)


def millis(d: date) -> int:
    """Epoch millis for noon UTC on ``d``."""
    return int(datetime(d.year, d.month, d.day, 12, tzinfo=timezone.utc).timestamp() * 1000)


def make_habit(
    title: str = "Read",
    created: date = TODAY - timedelta(days=30),
    done: list[date] | None = None,
    habit_id: str | None = None,
    streak: int = 0,
    is_completed: bool = False,
) -> Habit:
    return Habit(
        id=habit_id or f"habit-{title.lower()}",
        title=title,
        created_at=millis(created),
        completed_dates=frozenset(format_day(d) for d in (done or [])),
        streak=streak,
        longest_streak=streak,
        is_completed=is_completed,
    )


class StubAIService:
    """Counts calls; succeeds, raises or hangs on demand."""

    def __init__(self, error: Exception | None = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.calls = 0

    async def _maybe_fail(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error

    async def generate_daily_nudge(self, habits, stats, day):
        await self._maybe_fail()
        return DailyNudge(date=day, message="AI says keep going", source=InsightSource.AI)

    async def generate_weekly_insight(self, habits, stats, week_of):
        await self._maybe_fail()
        return WeeklyInsight(
            week_of=week_of,
            summary="Solid week.",
            top_performing_habit="Read",
            most_at_risk_habit=None,
            recommendation="Read before bed.",
            overall_score=77,
            source=InsightSource.AI,
        )

    async def aclose(self):
        pass


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def stub_ai():
    return StubAIService()
