import logging
import uuid
from dataclasses import replace
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession

from habit_coach.domain import Habit, HabitRiskAssessment, HabitStatistics, format_day
from habit_coach.repositories.habit_repo import HabitRepository
from habit_coach.services.risk_detector import detect_at_risk
from habit_coach.services.statistics import compute_statistics, current_streak_from_strings
from habit_coach.utils.datetime_utils import app_timezone, local_today, now_millis

logger = logging.getLogger(__name__)


class HabitValidationError(ValueError):
    pass


# Passed for ``description`` to leave the stored value untouched.
UNCHANGED = object()


def _clean_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise HabitValidationError("Habit title must not be blank")
    return title


def _clean_description(description: str | None) -> str | None:
    description = (description or "").strip()
    return description or None


def as_of(habit: Habit, today: date) -> Habit:
    """``habit`` with streak and today's completion derived from its history."""
    streak = current_streak_from_strings(habit.completed_dates, today)
    return replace(
        habit,
        is_completed=habit.is_completed_today(today),
        streak=streak,
        longest_streak=max(habit.longest_streak, streak),
    )


class HabitService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.habit_repo = HabitRepository(session)

    async def create_habit(self, title: str, description: str | None = None) -> Habit:
        habit = Habit(
            id=str(uuid.uuid4()),
            title=_clean_title(title),
            description=_clean_description(description),
            created_at=now_millis(),
        )
        await self.habit_repo.create(habit)
        logger.info("Created habit %s", habit.id)
        return habit

    async def update_habit(
        self,
        habit_id: str,
        title: str,
        description=UNCHANGED,
        today: date | None = None,
    ) -> Habit | None:
        title = _clean_title(title)
        existing = await self.get_habit(habit_id, today)
        if not existing:
            return None

        if description is not UNCHANGED:
            existing = replace(existing, description=_clean_description(description))
        updated = replace(existing, title=title)
        await self.habit_repo.update(updated)
        return updated

    async def complete_habit(
        self, habit_id: str, completed: bool, today: date | None = None
    ) -> Habit | None:
        today = today or local_today()
        habit = await self.habit_repo.get_by_id(habit_id)
        if not habit:
            # already deleted elsewhere, e.g. a double tap
            logger.debug("Complete on missing habit %s ignored", habit_id)
            return None

        day = format_day(today)
        if completed:
            completed_dates = habit.completed_dates | {day}
        else:
            completed_dates = habit.completed_dates - {day}

        updated = as_of(replace(habit, completed_dates=completed_dates), today)
        await self.habit_repo.update(updated)
        return updated

    async def delete_habit(self, habit_id: str) -> bool:
        deleted = await self.habit_repo.delete(habit_id)
        if deleted:
            logger.info("Deleted habit %s", habit_id)
        return deleted

    async def get_habits(self, today: date | None = None) -> list[Habit]:
        today = today or local_today()
        return [as_of(h, today) for h in await self.habit_repo.list_habits()]

    async def get_habit(self, habit_id: str, today: date | None = None) -> Habit | None:
        habit = await self.habit_repo.get_by_id(habit_id)
        return as_of(habit, today or local_today()) if habit else None

    async def get_statistics(self, today: date | None = None) -> HabitStatistics:
        habits = await self.habit_repo.list_habits()
        return compute_statistics(habits, today or local_today(), app_timezone())

    async def get_at_risk(self, today: date | None = None) -> list[HabitRiskAssessment]:
        today = today or local_today()
        habits = await self.get_habits(today)
        return detect_at_risk(habits, today, app_timezone())
