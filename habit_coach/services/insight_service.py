"""Insight orchestrators: cache check, AI call, persist or fall back.

``generate`` never raises ``Exception``. A cache hit never reaches the AI
gateway. Fallback content is deterministic and is not cached, so the next
call retries the model. Cancellation propagates untouched: nothing is written
and no fallback is produced.

The cache lookup and the cache write each commit on their own, so no
database transaction stays open while the model is thinking. A failed write
is rolled back before the fallback is returned, leaving the session usable.
"""

import logging
from datetime import date

from habit_coach.core.locks import KeyedLocks
from habit_coach.domain import (
    DailyNudge, Habit, HabitStatistics, InsightSource, WeeklyInsight, format_day,
)
from habit_coach.repositories.insight_cache_repo import (
    DailyNudgeCacheRepository, InsightCacheRepository, WeeklyInsightCacheRepository,
)
from habit_coach.services.ai_service import AIService
from habit_coach.services.statistics import week_start

logger = logging.getLogger(__name__)


class InsightOrchestrator:
    kind = "insight"

    def __init__(
        self,
        cache: InsightCacheRepository,
        ai_service: AIService,
        locks: KeyedLocks | None = None,
    ):
        self.cache = cache
        self.ai_service = ai_service
        self.locks = locks if locks is not None else KeyedLocks()

    def cache_key(self, reference_date: date) -> date:
        return reference_date

    async def _ask_ai(self, habits, stats, key: date):
        raise NotImplementedError

    def build_fallback(self, habits, stats, reference_date: date):
        raise NotImplementedError

    async def _discard_pending(self):
        try:
            await self.cache.rollback()
        except Exception:
            logger.exception("%s cache rollback failed", self.kind)

    async def generate(
        self,
        habits: list[Habit],
        stats: HabitStatistics,
        reference_date: date,
    ):
        key = self.cache_key(reference_date)
        lock_key = f"{self.kind}:{format_day(key)}"

        async with self.locks.hold(lock_key):
            try:
                cached = await self.cache.get(key, reference_date)
                # eviction may hold a write lock; release it before the AI call
                await self.cache.commit()
                if cached is not None:
                    logger.debug("%s cache hit for %s", self.kind, key)
                    return cached

                entry = await self._ask_ai(habits, stats, key)
                await self.cache.save(entry)
                await self.cache.commit()
                logger.info("%s for %s generated by AI and cached", self.kind, key)
                return entry
            except Exception as e:
                logger.warning(
                    "%s for %s falls back to local content: %s: %s",
                    self.kind, key, type(e).__name__, e,
                )
                await self._discard_pending()
                return self.build_fallback(habits, stats, reference_date)


class DailyNudgeService(InsightOrchestrator):
    kind = "daily_nudge"

    def __init__(
        self,
        cache: DailyNudgeCacheRepository,
        ai_service: AIService,
        locks: KeyedLocks | None = None,
    ):
        super().__init__(cache, ai_service, locks)

    async def _ask_ai(self, habits, stats, key: date) -> DailyNudge:
        return await self.ai_service.generate_daily_nudge(habits, stats, key)

    def build_fallback(
        self, habits: list[Habit], stats: HabitStatistics, reference_date: date
    ) -> DailyNudge:
        streak = stats.current_streak
        if not habits:
            message = "Start your first habit today. Small steps lead to big changes 🌱"
        elif streak >= 7:
            message = f"🔥 {streak}-day streak! You're on fire. Keep it going today."
        elif streak >= 3:
            message = f"💪 {streak} days in a row! Don't break the chain today."
        elif stats.total_habits > 0 and stats.completed_today == stats.total_habits:
            message = "🎉 All habits done today! Amazing consistency."
        elif stats.completed_today == 0:
            message = "Your habits are waiting. Completing even one today keeps the momentum alive."
        else:
            message = (
                f"You've completed {stats.completed_today}/{stats.total_habits} "
                "habits today. Finish strong! 💫"
            )
        return DailyNudge(
            date=self.cache_key(reference_date),
            message=message,
            source=InsightSource.FALLBACK,
        )


class WeeklyInsightService(InsightOrchestrator):
    kind = "weekly_insight"

    def __init__(
        self,
        cache: WeeklyInsightCacheRepository,
        ai_service: AIService,
        locks: KeyedLocks | None = None,
    ):
        super().__init__(cache, ai_service, locks)

    def cache_key(self, reference_date: date) -> date:
        return week_start(reference_date)

    async def _ask_ai(self, habits, stats, key: date) -> WeeklyInsight:
        return await self.ai_service.generate_weekly_insight(habits, stats, key)

    def build_fallback(
        self, habits: list[Habit], stats: HabitStatistics, reference_date: date
    ) -> WeeklyInsight:
        score = round(stats.weekly_completion_rate * 100)
        if score >= 80:
            recommendation = "Great work! Keep this pace going 🔥"
        elif score >= 50:
            recommendation = "More than halfway there! Push a little more 💪"
        elif not habits:
            recommendation = "No habits yet. Add your first habit to get started!"
        else:
            recommendation = "Starting is half the battle. Pick one small habit and try again 🌱"

        top = max(habits, key=lambda h: h.streak).title if habits else None
        at_risk = next((h.title for h in habits if not h.is_completed_on(reference_date)), None)

        return WeeklyInsight(
            week_of=self.cache_key(reference_date),
            summary=f"Habit completion rate this week: {score}%",
            top_performing_habit=top,
            most_at_risk_habit=at_risk,
            recommendation=recommendation,
            overall_score=score,
            source=InsightSource.FALLBACK,
        )
