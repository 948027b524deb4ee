import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from habit_coach.config import settings
from habit_coach.domain import (
    DailyNudge, InsightSource, WeeklyInsight, format_day, parse_day,
)
from habit_coach.models.insight import DailyNudgeEntry, WeeklyInsightEntry
from habit_coach.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is written in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InsightCacheRepository(BaseRepository):
    """Date-keyed cache with lazy TTL eviction on read.

    Subclasses name the key column and map rows to domain entries.
    """

    key_column: str = ""

    def __init__(self, session: AsyncSession, ttl_days: int | None = None):
        super().__init__(session)
        self.ttl_days = settings.CACHE_TTL_DAYS if ttl_days is None else ttl_days

    async def evict_older_than(self, cutoff: date) -> int:
        column = getattr(self.model, self.key_column)
        stmt = delete(self.model).where(column < format_day(cutoff))
        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.info(
                "Evicted %d stale rows from %s", result.rowcount, self.model.__tablename__
            )
        return result.rowcount or 0

    async def get(self, key: date, reference_date: date):
        await self.evict_older_than(reference_date - timedelta(days=self.ttl_days))
        row = await self.get_row(format_day(key))
        return self._to_domain(row) if row else None

    async def save(self, entry) -> None:
        await self.session.merge(self._to_row(entry))
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    def _to_domain(self, row):
        raise NotImplementedError

    def _to_row(self, entry):
        raise NotImplementedError


class WeeklyInsightCacheRepository(InsightCacheRepository):
    model = WeeklyInsightEntry
    key_column = "week_of"

    def _to_domain(self, row: WeeklyInsightEntry) -> WeeklyInsight:
        return WeeklyInsight(
            week_of=parse_day(row.week_of),
            summary=row.summary,
            top_performing_habit=row.top_performing_habit,
            most_at_risk_habit=row.most_at_risk_habit,
            recommendation=row.recommendation,
            overall_score=row.overall_score,
            source=InsightSource(row.source),
            generated_at=_aware(row.generated_at),
        )

    def _to_row(self, entry: WeeklyInsight) -> WeeklyInsightEntry:
        return WeeklyInsightEntry(
            week_of=format_day(entry.week_of),
            summary=entry.summary,
            top_performing_habit=entry.top_performing_habit,
            most_at_risk_habit=entry.most_at_risk_habit,
            recommendation=entry.recommendation,
            overall_score=entry.overall_score,
            generated_at=entry.generated_at,
            source=entry.source.value,
        )


class DailyNudgeCacheRepository(InsightCacheRepository):
    model = DailyNudgeEntry
    key_column = "date"

    def _to_domain(self, row: DailyNudgeEntry) -> DailyNudge:
        return DailyNudge(
            date=parse_day(row.date),
            message=row.message,
            source=InsightSource(row.source),
            generated_at=_aware(row.generated_at),
        )

    def _to_row(self, entry: DailyNudge) -> DailyNudgeEntry:
        return DailyNudgeEntry(
            date=format_day(entry.date),
            message=entry.message,
            generated_at=entry.generated_at,
            source=entry.source.value,
        )
