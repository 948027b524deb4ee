from collections.abc import AsyncIterator

from sqlalchemy import select, event
from sqlalchemy.orm import Session

from habit_coach import domain
from habit_coach.core.events import habit_changes
from habit_coach.models.habit import Habit, HabitCompletion
from habit_coach.repositories.base import BaseRepository

_CHANGED_FLAG = "habits_changed"


@event.listens_for(Session, "after_commit")
def _publish_committed_changes(session):
    if session.info.pop(_CHANGED_FLAG, False):
        habit_changes.publish()


@event.listens_for(Session, "after_rollback")
def _drop_uncommitted_changes(session):
    session.info.pop(_CHANGED_FLAG, None)


def to_domain(row: Habit) -> domain.Habit:
    return domain.Habit(
        id=row.id,
        title=row.title,
        description=row.description,
        created_at=row.created_at,
        completed_dates=frozenset(c.completed_on for c in row.completions),
        streak=row.current_streak or 0,
        longest_streak=row.longest_streak or 0,
    )


class HabitRepository(BaseRepository):
    """Habit store. Speaks domain ``Habit`` values; rows stay inside."""

    model = Habit

    def _mark_changed(self):
        self.session.info[_CHANGED_FLAG] = True

    async def list_habits(self) -> list[domain.Habit]:
        stmt = (
            select(Habit)
            .order_by(Habit.created_at.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return [to_domain(row) for row in result.scalars().all()]

    async def get_by_id(self, habit_id: str) -> domain.Habit | None:
        row = await self.get_row(habit_id)
        return to_domain(row) if row else None

    async def create(self, habit: domain.Habit) -> str:
        row = Habit(
            id=habit.id,
            title=habit.title,
            description=habit.description,
            created_at=habit.created_at,
            current_streak=habit.streak,
            longest_streak=habit.longest_streak,
            completions=[
                HabitCompletion(completed_on=day)
                for day in sorted(habit.completed_dates)
            ],
        )
        self.session.add(row)
        await self.session.flush()
        self._mark_changed()
        return row.id

    async def update(self, habit: domain.Habit) -> None:
        row = await self.get_row(habit.id)
        if not row:
            return

        row.title = habit.title
        row.description = habit.description
        row.current_streak = habit.streak
        row.longest_streak = habit.longest_streak

        existing = {c.completed_on: c for c in row.completions}
        for day in sorted(habit.completed_dates - existing.keys()):
            row.completions.append(HabitCompletion(completed_on=day))
        for day, completion in existing.items():
            if day not in habit.completed_dates:
                row.completions.remove(completion)

        await self.session.flush()
        self._mark_changed()

    async def delete(self, habit_id: str) -> bool:
        deleted = await super().delete(habit_id)
        if deleted:
            self._mark_changed()
        return deleted

    async def observe(self) -> AsyncIterator[list[domain.Habit]]:
        """Yield the current habit list, then again after every committed change.

        The repository's session should be dedicated to the observer: each
        re-read rolls back the previous read transaction so it sees fresh
        commits.
        """
        queue = habit_changes.subscribe()
        try:
            yield await self.list_habits()
            while True:
                await queue.get()
                await self.session.rollback()
                yield await self.list_habits()
        finally:
            habit_changes.unsubscribe(queue)
