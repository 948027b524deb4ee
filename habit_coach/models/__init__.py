from habit_coach.models.base import Base
from habit_coach.models.habit import Habit, HabitCompletion
from habit_coach.models.insight import WeeklyInsightEntry, DailyNudgeEntry
