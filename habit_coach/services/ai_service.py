import logging
from datetime import date

from pydantic import BaseModel, Field, ValidationError

from habit_coach.config import settings
from habit_coach.domain import (
    DailyNudge, Habit, HabitStatistics, InsightSource, WeeklyInsight,
)
from habit_coach.services.ai_backends.base import AIGatewayError, BaseAIBackend
from habit_coach.services.ai_backends.openai_backend import OpenAIBackend
from habit_coach.services.ai_backends.openrouter_backend import OpenRouterBackend

logger = logging.getLogger(__name__)

WEEKLY_SYSTEM_INSTRUCTION = (
    "You are a behavioral coach assistant. Analyze habit data and return a JSON "
    "object with these exact keys: "
    '"summary" (2-3 sentences), "topPerformingHabit" (string or null), '
    '"mostAtRiskHabit" (string or null), "recommendation" (1 specific action), '
    '"overallScore" (integer 0-100). No markdown, pure JSON only.'
)

DAILY_SYSTEM_INSTRUCTION = (
    'You are a concise daily habit coach. Return a single JSON object with key "message" '
    "containing a 1-2 sentence motivational nudge personalized to the user's habit data. "
    "Be specific, warm, and actionable. No markdown, pure JSON only."
)


class AIContentError(Exception):
    """The model answered, but not in the agreed JSON shape."""


class WeeklyInsightPayload(BaseModel):
    summary: str = Field(min_length=1)
    topPerformingHabit: str | None = None
    mostAtRiskHabit: str | None = None
    recommendation: str = Field(min_length=1)
    overallScore: int = Field(ge=0, le=100)


class DailyNudgePayload(BaseModel):
    message: str = Field(min_length=1)


def create_backend(backend_name: str) -> BaseAIBackend:
    if backend_name == "openrouter":
        return OpenRouterBackend()
    return OpenAIBackend()


def create_fallback_backend() -> BaseAIBackend | None:
    if settings.AI_BACKEND == "openai" and settings.OPENROUTER_API_KEY:
        return OpenRouterBackend()
    if settings.AI_BACKEND == "openrouter" and settings.OPENAI_API_KEY:
        return OpenAIBackend()
    return None


def build_weekly_prompt(habits: list[Habit], stats: HabitStatistics) -> str:
    habit_lines = "\n".join(
        f'- "{h.title}": {len(h.completed_dates)} completions total, streak {h.streak}d'
        for h in habits
    ) or "- (no habits yet)"
    return (
        "Weekly habit data for behavioral analysis:\n"
        f"Total habits: {len(habits)}\n"
        f"Completed today: {stats.completed_today}\n"
        f"Current streak: {stats.current_streak} days\n"
        f"Longest streak: {stats.longest_streak} days\n"
        f"Weekly completion rate: {round(stats.weekly_completion_rate * 100)}%\n\n"
        f"Individual habits:\n{habit_lines}\n\n"
        "Provide a JSON behavioral coaching insight for this week."
    )


def build_daily_prompt(habits: list[Habit], stats: HabitStatistics, day: date) -> str:
    habit_lines = "\n".join(
        f'- "{h.title}": {"done" if h.is_completed_on(day) else "not done"}, streak {h.streak}d'
        for h in habits
    ) or "- (no habits yet)"
    return (
        f"Daily habit snapshot for {day.isoformat()}:\n"
        f"Total habits: {len(habits)}\n"
        f"Completed today: {stats.completed_today}/{stats.total_habits}\n"
        f"Current streak: {stats.current_streak} days\n\n"
        f"Today's status:\n{habit_lines}\n\n"
        "Generate a short personalized daily coaching nudge as JSON."
    )


class AIService:
    """AI content gateway: prompt in, validated domain entry out.

    Raises ``AIGatewayError`` or ``AIContentError``; deciding what to do about
    a failure belongs to the caller.
    """

    def __init__(
        self,
        primary_backend: BaseAIBackend | None = None,
        fallback_backend: BaseAIBackend | None = None,
    ):
        if primary_backend is None:
            primary_backend = create_backend(settings.AI_BACKEND)
            fallback_backend = create_fallback_backend()
        self.primary_backend = primary_backend
        self.fallback_backend = fallback_backend

    async def _call_with_fallback(
        self, system_instruction: str, user_prompt: str, max_tokens: int
    ) -> str:
        try:
            return await self.primary_backend.complete(
                system_instruction, user_prompt, max_tokens=max_tokens
            )
        except AIGatewayError:
            if not self.fallback_backend:
                raise
            logger.info(
                "Primary AI backend %s failed, trying %s",
                self.primary_backend.name, self.fallback_backend.name,
            )
        return await self.fallback_backend.complete(
            system_instruction, user_prompt, max_tokens=max_tokens
        )

    async def generate_weekly_insight(
        self, habits: list[Habit], stats: HabitStatistics, week_of: date
    ) -> WeeklyInsight:
        content = await self._call_with_fallback(
            WEEKLY_SYSTEM_INSTRUCTION,
            build_weekly_prompt(habits, stats),
            max_tokens=300,
        )
        try:
            payload = WeeklyInsightPayload.model_validate_json(content)
        except ValidationError as e:
            raise AIContentError(f"Unusable weekly insight: {e.error_count()} errors") from e

        return WeeklyInsight(
            week_of=week_of,
            summary=payload.summary,
            top_performing_habit=payload.topPerformingHabit,
            most_at_risk_habit=payload.mostAtRiskHabit,
            recommendation=payload.recommendation,
            overall_score=payload.overallScore,
            source=InsightSource.AI,
        )

    async def generate_daily_nudge(
        self, habits: list[Habit], stats: HabitStatistics, day: date
    ) -> DailyNudge:
        content = await self._call_with_fallback(
            DAILY_SYSTEM_INSTRUCTION,
            build_daily_prompt(habits, stats, day),
            max_tokens=120,
        )
        try:
            payload = DailyNudgePayload.model_validate_json(content)
        except ValidationError as e:
            raise AIContentError(f"Unusable daily nudge: {e.error_count()} errors") from e

        return DailyNudge(date=day, message=payload.message, source=InsightSource.AI)

    async def aclose(self) -> None:
        await self.primary_backend.aclose()
        if self.fallback_backend:
            await self.fallback_backend.aclose()
