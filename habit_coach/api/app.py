import logging
from datetime import date

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from habit_coach.core.database import async_session_factory, init_models
from habit_coach.core.locks import insight_locks
from habit_coach.domain import (
    DailyNudge, Habit, HabitRiskAssessment, HabitStatistics, WeeklyInsight,
)
from habit_coach.repositories.insight_cache_repo import (
    DailyNudgeCacheRepository, WeeklyInsightCacheRepository,
)
from habit_coach.services.ai_service import AIService
from habit_coach.services.habit_service import (
    UNCHANGED, HabitService, HabitValidationError,
)
from habit_coach.services.insight_service import DailyNudgeService, WeeklyInsightService
from habit_coach.utils.datetime_utils import local_today


class HabitCreatePayload(BaseModel):
    title: str = Field(max_length=255)
    description: str | None = Field(default=None, max_length=500)


class HabitUpdatePayload(BaseModel):
    title: str = Field(max_length=255)
    description: str | None = Field(default=None, max_length=500)


class CompletePayload(BaseModel):
    completed: bool = True


app = FastAPI(title="Habit Coach API", version="1.0.0")
logger = logging.getLogger(__name__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _ai_service() -> AIService:
    service = getattr(app.state, "ai_service", None)
    if service is None:
        service = AIService()
        app.state.ai_service = service
    return service


def _serialize_habit(habit: Habit, today: date) -> dict:
    return {
        "id": habit.id,
        "title": habit.title,
        "description": habit.description,
        "created_at": habit.created_at,
        "completed_dates": sorted(habit.completed_dates),
        "is_completed": habit.is_completed,
        "is_completed_today": habit.is_completed_today(today),
        "streak": habit.streak,
        "longest_streak": habit.longest_streak,
    }


def _serialize_statistics(stats: HabitStatistics) -> dict:
    return {
        "total_habits": stats.total_habits,
        "completed_today": stats.completed_today,
        "total_completed": stats.total_completed,
        "current_streak": stats.current_streak,
        "longest_streak": stats.longest_streak,
        "weekly_completion_rate": stats.weekly_completion_rate,
        "weekly_daily_rates": list(stats.weekly_daily_rates),
    }


def _serialize_risk(assessment: HabitRiskAssessment) -> dict:
    return {
        "habit_id": assessment.habit.id,
        "title": assessment.habit.title,
        "miss_rate": assessment.miss_rate,
        "is_at_risk": assessment.is_at_risk,
    }


def _serialize_nudge(nudge: DailyNudge) -> dict:
    return {
        "date": nudge.date.isoformat(),
        "message": nudge.message,
        "generated_at": nudge.generated_at.isoformat(),
        "source": nudge.source.value,
    }


def _serialize_insight(insight: WeeklyInsight) -> dict:
    return {
        "week_of": insight.week_of.isoformat(),
        "summary": insight.summary,
        "top_performing_habit": insight.top_performing_habit,
        "most_at_risk_habit": insight.most_at_risk_habit,
        "recommendation": insight.recommendation,
        "overall_score": insight.overall_score,
        "generated_at": insight.generated_at.isoformat(),
        "source": insight.source.value,
    }


@app.on_event("startup")
async def startup():
    try:
        await init_models()
    except Exception as e:
        logger.warning("Startup DB init skipped: %s", e)


@app.on_event("shutdown")
async def shutdown():
    service = getattr(app.state, "ai_service", None)
    if service is not None:
        await service.aclose()


@app.exception_handler(HabitValidationError)
async def validation_error_handler(request, exc: HabitValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_error_handler(request, exc: SQLAlchemyError):
    logger.error("DB error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Could not save your habits right now. Please try again."},
    )


@app.get("/health")
async def health():
    return {"ok": True}


@app.get("/api/v1/habits")
async def list_habits():
    today = local_today()
    async with async_session_factory() as session:
        habits = await HabitService(session).get_habits(today)
        return {"habits": [_serialize_habit(h, today) for h in habits]}


@app.post("/api/v1/habits", status_code=201)
async def create_habit(payload: HabitCreatePayload):
    async with async_session_factory() as session:
        habit = await HabitService(session).create_habit(
            title=payload.title,
            description=payload.description,
        )
        await session.commit()
        return _serialize_habit(habit, local_today())


@app.get("/api/v1/habits/at-risk")
async def at_risk_habits():
    async with async_session_factory() as session:
        assessments = await HabitService(session).get_at_risk()
        return {"habits": [_serialize_risk(a) for a in assessments]}


@app.get("/api/v1/habits/{habit_id}")
async def get_habit(habit_id: str):
    async with async_session_factory() as session:
        habit = await HabitService(session).get_habit(habit_id)
        if not habit:
            raise HTTPException(status_code=404, detail="Habit not found")
        return _serialize_habit(habit, local_today())


@app.patch("/api/v1/habits/{habit_id}")
async def update_habit(habit_id: str, payload: HabitUpdatePayload):
    async with async_session_factory() as session:
        description = (
            payload.description if "description" in payload.model_fields_set else UNCHANGED
        )
        habit = await HabitService(session).update_habit(
            habit_id, title=payload.title, description=description
        )
        if not habit:
            raise HTTPException(status_code=404, detail="Habit not found")
        await session.commit()
        return _serialize_habit(habit, local_today())


@app.post("/api/v1/habits/{habit_id}/complete")
async def complete_habit(habit_id: str, payload: CompletePayload):
    today = local_today()
    async with async_session_factory() as session:
        habit = await HabitService(session).complete_habit(
            habit_id, payload.completed, today
        )
        await session.commit()
        if not habit:
            return {"ok": True, "habit": None}
        return {"ok": True, "habit": _serialize_habit(habit, today)}


@app.delete("/api/v1/habits/{habit_id}")
async def delete_habit(habit_id: str):
    async with async_session_factory() as session:
        deleted = await HabitService(session).delete_habit(habit_id)
        await session.commit()
        return {"ok": True, "deleted": deleted}


@app.get("/api/v1/statistics")
async def statistics():
    async with async_session_factory() as session:
        stats = await HabitService(session).get_statistics()
        return _serialize_statistics(stats)


@app.get("/api/v1/insights/daily")
async def daily_nudge():
    today = local_today()
    async with async_session_factory() as session:
        habit_service = HabitService(session)
        habits = await habit_service.get_habits(today)
        stats = await habit_service.get_statistics(today)
        service = DailyNudgeService(
            DailyNudgeCacheRepository(session), _ai_service(), insight_locks
        )
        nudge = await service.generate(habits, stats, today)
        await session.commit()
        return _serialize_nudge(nudge)


@app.get("/api/v1/insights/weekly")
async def weekly_insight():
    today = local_today()
    async with async_session_factory() as session:
        habit_service = HabitService(session)
        habits = await habit_service.get_habits(today)
        stats = await habit_service.get_statistics(today)
        service = WeeklyInsightService(
            WeeklyInsightCacheRepository(session), _ai_service(), insight_locks
        )
        insight = await service.generate(habits, stats, today)
        await session.commit()
        return _serialize_insight(insight)
