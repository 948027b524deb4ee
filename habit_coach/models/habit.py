from sqlalchemy import BigInteger, Integer, String, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from habit_coach.models.base import Base, TimestampMixin


class Habit(Base, TimestampMixin):
    __tablename__ = "habits"
    __table_args__ = (
        Index("ix_habits_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500))

    # epoch millis
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # last computed values; readers derive the current streak from completions
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)

    completions = relationship(
        "HabitCompletion",
        back_populates="habit",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class HabitCompletion(Base):
    __tablename__ = "habit_completions"
    __table_args__ = (
        Index("ix_habit_completions_habit_date", "habit_id", "completed_on", unique=True),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    habit_id: Mapped[str] = mapped_column(
        ForeignKey("habits.id", ondelete="CASCADE")
    )

    # yyyy-MM-dd
    completed_on: Mapped[str] = mapped_column(String(10), nullable=False)

    habit = relationship("Habit", back_populates="completions")
