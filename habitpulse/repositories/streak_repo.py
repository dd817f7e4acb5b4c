from datetime import date
from sqlalchemy import select, and_

from habitpulse.models.habit import Habit, HabitStreak, HabitReset
from habitpulse.repositories.base import BaseRepository


class StreakRepository(BaseRepository):
    model = HabitStreak

    async def get_for_habit(self, habit_id: int, user_id: int) -> HabitStreak | None:
        stmt = select(HabitStreak).where(
            and_(
                HabitStreak.habit_id == habit_id,
                HabitStreak.user_id == user_id,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, habit_id: int, user_id: int) -> HabitStreak:
        streak = await self.get_for_habit(habit_id, user_id)
        if streak:
            return streak
        streak = HabitStreak(
            habit_id=habit_id,
            user_id=user_id,
            current_streak=0,
            longest_streak=0,
            grace_period_used=False,
            missed_days_count=0,
            streak_history=[],
        )
        self.session.add(streak)
        await self.session.flush()
        return streak

    async def get_active_streaks_above(self, min_streak: int) -> list[tuple[Habit, HabitStreak]]:
        stmt = (
            select(Habit, HabitStreak)
            .join(
                HabitStreak,
                and_(
                    HabitStreak.habit_id == Habit.id,
                    HabitStreak.user_id == Habit.user_id,
                ),
            )
            .where(
                and_(
                    Habit.is_active == True,
                    HabitStreak.current_streak > min_streak,
                )
            )
            .order_by(Habit.user_id, Habit.id)
        )
        result = await self.session.execute(stmt)
        return [(habit, streak) for habit, streak in result.all()]

    async def create_reset(
        self,
        habit_id: int,
        user_id: int,
        reset_date: date,
        previous_streak: int,
        reason: str,
        notes: str | None = None,
        user_initiated: bool = False,
    ) -> HabitReset:
        reset = HabitReset(
            habit_id=habit_id,
            user_id=user_id,
            reset_date=reset_date,
            previous_streak=previous_streak,
            reason=reason,
            notes=notes,
            user_initiated=user_initiated,
        )
        self.session.add(reset)
        await self.session.flush()
        return reset

    async def get_resets(self, habit_id: int) -> list[HabitReset]:
        stmt = (
            select(HabitReset)
            .where(HabitReset.habit_id == habit_id)
            .order_by(HabitReset.reset_date, HabitReset.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
