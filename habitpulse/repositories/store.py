from sqlalchemy.ext.asyncio import AsyncSession

from habitpulse.repositories.habit_repo import HabitRepository
from habitpulse.repositories.notification_repo import NotificationRepository, PointsRepository
from habitpulse.repositories.reminder_repo import ReminderConfigRepository, ScheduledReminderRepository
from habitpulse.repositories.streak_repo import StreakRepository
from habitpulse.repositories.user_repo import UserRepository


class DataStore:
    """All repositories the engine needs, bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)
        self.habits = HabitRepository(session)
        self.streaks = StreakRepository(session)
        self.reminder_configs = ReminderConfigRepository(session)
        self.scheduled_reminders = ScheduledReminderRepository(session)
        self.notifications = NotificationRepository(session)
        self.points = PointsRepository(session)

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()
