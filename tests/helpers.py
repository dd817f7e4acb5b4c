"""Test doubles and model factories shared across the suite."""

from __future__ import annotations

import itertools
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from habitpulse.models import (
    FrequencyType,
    Habit,
    HabitDailyStatus,
    HabitLog,
    HabitReminder,
    HabitStreak,
    ReminderType,
    ScheduledReminder,
    User,
)
from habitpulse.services.notification_sender import BaseNotificationSender


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class RecordingSender(BaseNotificationSender):
    def __init__(self):
        self.sent: list[tuple[int, str, str]] = []

    async def send(self, user: User, title: str, body: str) -> None:
        self.sent.append((user.id, title, body))


class FailingSender(BaseNotificationSender):
    def __init__(self, message: str = "telegram down"):
        self.message = message
        self.attempts = 0

    async def send(self, user: User, title: str, body: str) -> None:
        self.attempts += 1
        raise ConnectionError(self.message)


class Factory:
    """Creates and flushes model rows with sensible defaults."""

    _ids = itertools.count(1000)

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, instance):
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def user(self, **kwargs) -> User:
        values = {
            "telegram_id": next(self._ids),
            "first_name": "Tester",
            "timezone": "UTC",
            "daily_goal": 1,
        }
        values.update(kwargs)
        return await self._save(User(**values))

    async def habit(self, user: User, **kwargs) -> Habit:
        values = {
            "user_id": user.id,
            "name": "Read",
            "frequency_type": FrequencyType.DAILY,
            "start_date": date(2024, 1, 1),
        }
        values.update(kwargs)
        return await self._save(Habit(**values))

    async def streak(self, habit: Habit, current: int = 0, longest: int | None = None, **kwargs) -> HabitStreak:
        values = {
            "habit_id": habit.id,
            "user_id": habit.user_id,
            "current_streak": current,
            "longest_streak": current if longest is None else longest,
            "grace_period_used": False,
            "missed_days_count": 0,
            "streak_history": [],
        }
        values.update(kwargs)
        return await self._save(HabitStreak(**values))

    async def log(self, habit: Habit, day: date, completed_at: datetime | None = None) -> HabitLog:
        return await self._save(HabitLog(
            habit_id=habit.id,
            user_id=habit.user_id,
            log_date=day,
            completed=True,
            completed_at=completed_at or datetime.combine(day, time(12, 0), tzinfo=timezone.utc),
        ))

    async def status(self, habit: Habit, day: date, **kwargs) -> HabitDailyStatus:
        values = {
            "habit_id": habit.id,
            "user_id": habit.user_id,
            "day": day,
            "is_scheduled": True,
            "is_completed": False,
            "is_skipped": False,
        }
        values.update(kwargs)
        return await self._save(HabitDailyStatus(**values))

    async def config(self, habit: Habit, reminder_time: time = time(9, 0), **kwargs) -> HabitReminder:
        values = {
            "habit_id": habit.id,
            "user_id": habit.user_id,
            "reminder_time": reminder_time,
            "is_enabled": True,
            "pre_notification_minutes": 10,
        }
        values.update(kwargs)
        return await self._save(HabitReminder(**values))

    async def reminder(self, habit: Habit, scheduled_time: datetime, **kwargs) -> ScheduledReminder:
        values = {
            "habit_id": habit.id,
            "user_id": habit.user_id,
            "scheduled_time": scheduled_time,
            "reminder_type": ReminderType.PRIMARY,
            "message": f"Time to complete your habit: {habit.name}",
            "is_sent": False,
            "meta": {"habit_name": habit.name},
            "dedup_key": f"test:{habit.id}:{scheduled_time.isoformat()}",
        }
        values.update(kwargs)
        return await self._save(ScheduledReminder(**values))
