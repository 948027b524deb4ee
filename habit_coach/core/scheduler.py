import asyncio
import logging
from collections.abc import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from habit_coach.config import settings
from habit_coach.core.database import async_session_factory
from habit_coach.core.locks import KeyedLocks, insight_locks
from habit_coach.repositories.insight_cache_repo import (
    DailyNudgeCacheRepository, WeeklyInsightCacheRepository,
)
from habit_coach.services.ai_service import AIService
from habit_coach.services.habit_service import HabitService
from habit_coach.services.insight_service import DailyNudgeService, WeeklyInsightService
from habit_coach.utils.datetime_utils import app_timezone, local_today

logger = logging.getLogger(__name__)


async def run_with_retry(
    job: Callable[[], Awaitable[object]],
    name: str,
    max_attempts: int | None = None,
    base_delay: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
):
    """Run ``job`` up to ``max_attempts`` times with exponential backoff.

    Returns the job result, or ``None`` once attempts are exhausted; the next
    scheduled run is the real retry after that.
    """
    max_attempts = max_attempts or settings.JOB_MAX_ATTEMPTS
    delay = settings.JOB_RETRY_DELAY_SECONDS if base_delay is None else base_delay

    for attempt in range(1, max_attempts + 1):
        try:
            return await job()
        except Exception as e:
            if attempt == max_attempts:
                logger.exception("Job %s failed after %d attempts", name, attempt)
                return None
            logger.warning(
                "Job %s attempt %d/%d failed (%s). Retry in %s sec.",
                name, attempt, max_attempts, e, delay,
            )
            await sleep(delay)
            delay *= 2


class InsightScheduler:
    def __init__(
        self,
        session_factory=async_session_factory,
        ai_service: AIService | None = None,
        locks: KeyedLocks = insight_locks,
    ):
        self.scheduler = AsyncIOScheduler(timezone=app_timezone())
        self.session_factory = session_factory
        self.ai_service = ai_service
        self.locks = locks

    def _ai(self) -> AIService:
        if self.ai_service is None:
            self.ai_service = AIService()
        return self.ai_service

    def start(self):
        if self.scheduler.running:
            return
        self.scheduler.add_job(
            self.daily_nudge_tick,
            CronTrigger(hour=settings.DAILY_NUDGE_HOUR, minute=0),
            id="daily_nudge",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self.weekly_insight_tick,
            CronTrigger(day_of_week="mon", hour=settings.WEEKLY_INSIGHT_HOUR, minute=0),
            id="weekly_insight",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self.scheduler.start()

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def generate_daily_nudge(self):
        today = local_today()
        async with self.session_factory() as session:
            habit_service = HabitService(session)
            habits = await habit_service.get_habits(today)
            stats = await habit_service.get_statistics(today)
            service = DailyNudgeService(
                DailyNudgeCacheRepository(session), self._ai(), self.locks
            )
            nudge = await service.generate(habits, stats, today)
            await session.commit()
        logger.info("Daily nudge (%s): %s", nudge.source.value, nudge.message)
        return nudge

    async def generate_weekly_insight(self):
        today = local_today()
        async with self.session_factory() as session:
            habit_service = HabitService(session)
            habits = await habit_service.get_habits(today)
            stats = await habit_service.get_statistics(today)
            service = WeeklyInsightService(
                WeeklyInsightCacheRepository(session), self._ai(), self.locks
            )
            insight = await service.generate(habits, stats, today)
            await session.commit()
        logger.info(
            "Weekly insight for %s (%s): %s",
            insight.week_of, insight.source.value, insight.recommendation,
        )
        return insight

    async def daily_nudge_tick(self):
        return await run_with_retry(self.generate_daily_nudge, "daily_nudge")

    async def weekly_insight_tick(self):
        return await run_with_retry(self.generate_weekly_insight, "weekly_insight")


insight_scheduler = InsightScheduler()
