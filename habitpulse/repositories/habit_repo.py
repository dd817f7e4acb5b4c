from datetime import date, datetime
from sqlalchemy import select, func, and_, or_

from habitpulse.models.habit import Habit, HabitLog, HabitDailyStatus
from habitpulse.repositories.base import BaseRepository


class HabitRepository(BaseRepository):
    model = Habit

    async def get_active_habits(self, user_id: int) -> list[Habit]:
        stmt = (
            select(Habit)
            .where(
                and_(
                    Habit.user_id == user_id,
                    Habit.is_active == True,
                )
            )
            .order_by(Habit.created_at, Habit.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    def _completed_log_filter(self, day: date, start: datetime, end: datetime):
        return and_(
            HabitLog.completed == True,
            or_(
                and_(HabitLog.completed_at >= start, HabitLog.completed_at < end),
                HabitLog.log_date == day,
            ),
        )

    async def has_completion_log(
        self, habit_id: int, user_id: int, day: date, start: datetime, end: datetime
    ) -> bool:
        stmt = select(func.count()).select_from(HabitLog).where(
            and_(
                HabitLog.habit_id == habit_id,
                HabitLog.user_id == user_id,
                self._completed_log_filter(day, start, end),
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar() > 0

    async def get_completed_habit_ids(
        self, user_id: int, day: date, start: datetime, end: datetime
    ) -> set[int]:
        logs_stmt = (
            select(HabitLog.habit_id)
            .where(
                and_(
                    HabitLog.user_id == user_id,
                    self._completed_log_filter(day, start, end),
                )
            )
            .distinct()
        )
        status_stmt = (
            select(HabitDailyStatus.habit_id)
            .where(
                and_(
                    HabitDailyStatus.user_id == user_id,
                    HabitDailyStatus.day == day,
                    HabitDailyStatus.is_completed == True,
                )
            )
            .distinct()
        )
        from_logs = (await self.session.execute(logs_stmt)).scalars().all()
        from_statuses = (await self.session.execute(status_stmt)).scalars().all()
        return set(from_logs) | set(from_statuses)

    async def get_status(
        self, habit_id: int, user_id: int, day: date
    ) -> HabitDailyStatus | None:
        stmt = select(HabitDailyStatus).where(
            and_(
                HabitDailyStatus.habit_id == habit_id,
                HabitDailyStatus.user_id == user_id,
                HabitDailyStatus.day == day,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_status(
        self,
        habit_id: int,
        user_id: int,
        day: date,
        is_scheduled: bool = True,
        is_completed: bool = False,
    ) -> HabitDailyStatus:
        status = HabitDailyStatus(
            habit_id=habit_id,
            user_id=user_id,
            day=day,
            is_scheduled=is_scheduled,
            is_completed=is_completed,
            is_skipped=False,
        )
        self.session.add(status)
        await self.session.flush()
        return status
