from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from habit_coach.models.base import Base


class WeeklyInsightEntry(Base):
    __tablename__ = "weekly_insights"

    # yyyy-MM-dd, Monday of the week
    week_of: Mapped[str] = mapped_column(String(10), primary_key=True)

    summary: Mapped[str] = mapped_column(Text, nullable=False)
    top_performing_habit: Mapped[str | None] = mapped_column(String(255))
    most_at_risk_habit: Mapped[str | None] = mapped_column(String(255))
    recommendation: Mapped[str] = mapped_column(Text, nullable=False)
    overall_score: Mapped[int] = mapped_column(Integer, default=0)

    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    source: Mapped[str] = mapped_column(String(16))


class DailyNudgeEntry(Base):
    __tablename__ = "daily_nudges"

    # yyyy-MM-dd
    date: Mapped[str] = mapped_column(String(10), primary_key=True)

    message: Mapped[str] = mapped_column(Text, nullable=False)

    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    source: Mapped[str] = mapped_column(String(16))
