import logging
from datetime import datetime, timedelta

from habitpulse.models.reminder import ReminderType, ScheduledReminder, SendStatus
from habitpulse.models.user import User
from habitpulse.repositories.store import DataStore
from habitpulse.services.completion import habit_completed_on
from habitpulse.services.events import Event, EventPublisher, EventType
from habitpulse.services.notification_sender import BaseNotificationSender
from habitpulse.services.quiet_hours import QuietHoursEvaluator
from habitpulse.utils.datetime_utils import Clock, local_day_bounds, local_today

logger = logging.getLogger(__name__)

REMINDER_POINTS = 1

REMINDER_TITLES = {
    ReminderType.PRIMARY: "Habit Reminder",
    ReminderType.PRE_NOTIFICATION: "Upcoming Habit",
    ReminderType.STREAK_WARNING: "Streak at Risk!",
    ReminderType.STREAK_PRESERVATION: "Urgent Habit Reminder",
}


class ReminderDispatcher:
    def __init__(
        self,
        store: DataStore,
        sender: BaseNotificationSender,
        clock: Clock | None = None,
        publisher: EventPublisher | None = None,
    ):
        self.store = store
        self.sender = sender
        self.clock = clock or Clock()
        self.quiet_hours = QuietHoursEvaluator()
        self.publisher = publisher or EventPublisher(store)

    async def process_due(self, now: datetime | None = None) -> dict:
        now = now or self.clock.now()
        results = {"processed": 0, "sent": 0, "skipped": 0, "failed": 0}

        due = await self.store.scheduled_reminders.get_due(now)
        logger.info("Processing %d due reminders", len(due))

        for reminder in due:
            status = await self.process_reminder(reminder, now)
            results["processed"] += 1
            if status == SendStatus.SENT:
                results["sent"] += 1
            elif status == SendStatus.FAILED:
                results["failed"] += 1
            else:
                results["skipped"] += 1

        return {"success": True, "results": results}

    async def process_reminder(self, reminder: ScheduledReminder, now: datetime | None = None) -> SendStatus:
        """Close ``reminder`` with exactly one terminal status.

        Each step runs in its own savepoint, so a database error on one
        reminder never undoes the statuses already written for others.
        """
        if reminder.is_sent:
            return reminder.send_status

        now = now or self.clock.now()
        reminder_id = reminder.id
        try:
            async with self.store.session.begin_nested():
                user, status = await self._triage(reminder, now)
                if status is not None:
                    await self._close(reminder, status, now)
            if status is not None:
                return status

            title = REMINDER_TITLES.get(ReminderType(reminder.reminder_type), "Habit Reminder")
            await self.sender.send(user, title, reminder.message)
        except Exception as e:
            logger.exception("Error processing reminder %s", reminder_id)
            await self.store.session.refresh(reminder)
            if reminder.is_sent:
                return reminder.send_status
            await self._close(reminder, SendStatus.FAILED, now, failure_reason=str(e) or type(e).__name__)
            return SendStatus.FAILED

        await self._close(reminder, SendStatus.SENT, now)

        if not reminder.is_test:
            try:
                async with self.store.session.begin_nested():
                    await self.publisher.publish([Event(
                        EventType.REMINDER_RECEIVED,
                        user.id,
                        {"scheduled_reminder_id": reminder_id, "points": REMINDER_POINTS},
                    )])
            except Exception:
                logger.exception("Error rewarding reminder %s", reminder_id)
        return SendStatus.SENT

    async def _triage(self, reminder: ScheduledReminder, now: datetime) -> tuple[User, SendStatus | None]:
        """Return the owner and the skip status, or None when it should be sent."""
        user = await self.store.users.get_by_id(reminder.user_id)
        if user is None:
            raise LookupError(f"User {reminder.user_id} not found")

        if reminder.habit_id is not None:
            day = local_today(reminder.scheduled_time, user.timezone)
            if await habit_completed_on(
                self.store.habits, reminder.habit_id, user.id, day, user.timezone
            ):
                return user, SendStatus.SKIPPED_COMPLETED

        if not reminder.is_test and self.quiet_hours.is_quiet(user, now):
            return user, SendStatus.SKIPPED_QUIET_HOURS
        return user, None

    async def _close(
        self,
        reminder: ScheduledReminder,
        status: SendStatus,
        now: datetime,
        failure_reason: str | None = None,
    ) -> SendStatus:
        await self.store.scheduled_reminders.close(reminder, status, now, failure_reason)
        return status

    async def dismiss(self, scheduled_reminder_id: int, user_id: int) -> bool:
        reminder = await self.store.scheduled_reminders.get_by_id(scheduled_reminder_id)
        if reminder is None or reminder.user_id != user_id:
            return False
        await self._close(reminder, SendStatus.DISMISSED_BY_USER, self.clock.now())
        return True

    async def send_test(self, config_id: int, user_id: int) -> SendStatus | None:
        config = await self.store.reminder_configs.get_by_id(config_id)
        if config is None or config.user_id != user_id:
            return None
        habit = await self.store.habits.get_by_id(config.habit_id)
        now = self.clock.now()
        reminder = await self.store.scheduled_reminders.create(
            habit_id=config.habit_id,
            user_id=user_id,
            reminder_config_id=config.id,
            scheduled_time=now,
            reminder_type=ReminderType.PRIMARY,
            message=config.notification_message or f"Time to complete your habit: {habit.name}",
            is_sent=False,
            meta={"habit_name": habit.name, "is_test": True},
        )
        return await self.process_reminder(reminder, now)

    async def get_upcoming(self, user_id: int, include_sent: bool = False) -> list[ScheduledReminder]:
        user = await self.store.users.get_by_id(user_id)
        if user is None:
            return []
        now = self.clock.now()
        _, end_of_day = local_day_bounds(local_today(now, user.timezone), user.timezone)
        return await self.store.scheduled_reminders.get_upcoming(
            user_id, now, end_of_day - timedelta(microseconds=1), include_sent=include_sent
        )
