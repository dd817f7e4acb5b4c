import logging
from datetime import date, datetime, time, timedelta

from habitpulse.models.habit import Habit, HabitStreak
from habitpulse.models.reminder import HabitReminder, ReminderType
from habitpulse.repositories.store import DataStore
from habitpulse.services.completion import habit_completed_on
from habitpulse.services.events import Event, EventPublisher, EventType
from habitpulse.services.frequency import FrequencyEvaluator
from habitpulse.services.quiet_hours import QuietHoursEvaluator
from habitpulse.utils.datetime_utils import Clock, at_local_time, local_today, to_local

logger = logging.getLogger(__name__)

STREAK_WARNING_MIN_STREAK = 2
STREAK_WARNING_TIME = time(20, 0)
STREAK_PRESERVATION_MIN_STREAK = 7
STREAK_PRESERVATION_SLOT_HOURS = 2


def config_dedup_key(
    reminder_type: ReminderType, habit_id: int, user_id: int, config_id: int, scheduled_time: datetime
) -> str:
    return f"{reminder_type.value}:{habit_id}:{user_id}:{config_id}:{scheduled_time.isoformat()}"


class ReminderGenerator:
    def __init__(
        self,
        store: DataStore,
        clock: Clock | None = None,
        publisher: EventPublisher | None = None,
    ):
        self.store = store
        self.clock = clock or Clock()
        self.frequency = FrequencyEvaluator(store.habits)
        self.quiet_hours = QuietHoursEvaluator()
        self.publisher = publisher or EventPublisher(store)

    async def generate(self, habit: Habit, user_id: int, target_date: date, timezone: str) -> int:
        """Materialize the reminders of ``habit`` for ``target_date``.

        Times in the past are skipped, and re-running for the same day never
        duplicates an instance. Returns the number of rows created.
        """
        if await habit_completed_on(self.store.habits, habit.id, user_id, target_date, timezone):
            return 0

        now = self.clock.now()
        created = 0
        configs = await self.store.reminder_configs.get_enabled_configs(habit.id, user_id)

        for config in configs:
            scheduled_time = at_local_time(target_date, config.reminder_time, timezone)
            if scheduled_time < now:
                continue

            if await self._insert_for_config(
                habit, user_id, config, ReminderType.PRIMARY, scheduled_time,
                message=config.notification_message or f"Time to complete your habit: {habit.name}",
            ):
                created += 1

            minutes = config.pre_notification_minutes or 0
            if minutes > 0:
                pre_time = scheduled_time - timedelta(minutes=minutes)
                if pre_time > now and await self._insert_for_config(
                    habit, user_id, config, ReminderType.PRE_NOTIFICATION, pre_time,
                    message=f"Coming up in {minutes} minutes: {habit.name}",
                    minutes_until=minutes,
                ):
                    created += 1

        return created

    async def _insert_for_config(
        self,
        habit: Habit,
        user_id: int,
        config: HabitReminder,
        reminder_type: ReminderType,
        scheduled_time: datetime,
        message: str,
        **meta,
    ) -> bool:
        return await self.store.scheduled_reminders.insert_if_absent(
            config_dedup_key(reminder_type, habit.id, user_id, config.id, scheduled_time),
            habit_id=habit.id,
            user_id=user_id,
            reminder_config_id=config.id,
            scheduled_time=scheduled_time,
            reminder_type=reminder_type,
            message=message,
            meta={"habit_name": habit.name, "habit_emoji": habit.emoji, **meta},
        )

    async def generate_for_user(self, user_id: int, target_date: date) -> int:
        user = await self.store.users.get_by_id(user_id)
        if not user or not user.prefers_notifications or user.on_vacation:
            return 0

        total = 0
        for habit in await self.store.habits.get_active_habits(user_id):
            if not await self.frequency.is_due(habit, target_date):
                continue
            total += await self.generate(habit, user_id, target_date, user.timezone)
        return total

    async def prepare_for_next_day(self, now: datetime | None = None) -> dict:
        now = now or self.clock.now()
        users = await self.store.users.get_notifiable_users()
        logger.info("Preparing reminders for %d users", len(users))

        prepared = 0
        errors = 0
        for user in users:
            tomorrow = local_today(now, user.timezone) + timedelta(days=1)
            user_id = user.id
            try:
                async with self.store.session.begin_nested():
                    prepared += await self.generate_for_user(user_id, tomorrow)
            except Exception:
                logger.exception("Error generating reminders for user %s", user_id)
                errors += 1

        return {"success": True, "prepared_count": prepared, "errors": errors}

    async def on_config_changed(self, config: HabitReminder) -> int:
        """Keep materialized instances in line with an edited configuration.

        A disabled config loses its pending instances; an enabled one is
        (re)materialized for the rest of today and for tomorrow.
        """
        if not config.is_enabled:
            removed = await self.store.scheduled_reminders.delete_pending_for_config(config.id)
            logger.info("Removed %d pending reminders of disabled config %s", removed, config.id)
            return 0

        habit = await self.store.habits.get_by_id(config.habit_id)
        user = await self.store.users.get_by_id(config.user_id)
        if habit is None or user is None or not habit.is_active:
            return 0

        today = local_today(self.clock.now(), user.timezone)
        created = 0
        for day in (today, today + timedelta(days=1)):
            if await self.frequency.is_due(habit, day):
                created += await self.generate(habit, user.id, day, user.timezone)
        return created

    async def on_config_removed(self, config_id: int) -> int:
        return await self.store.scheduled_reminders.delete_pending_for_config(config_id)

    async def generate_streak_warnings(self, now: datetime | None = None) -> dict:
        now = now or self.clock.now()
        checked = 0
        created = 0
        errors = 0

        for habit, streak in await self.store.streaks.get_active_streaks_above(STREAK_WARNING_MIN_STREAK):
            checked += 1
            habit_id = habit.id
            try:
                async with self.store.session.begin_nested():
                    if await self._create_streak_warning(habit, streak, now):
                        created += 1
            except Exception:
                logger.exception("Error creating streak warning for habit %s", habit_id)
                errors += 1

        return {"success": True, "habits_checked": checked, "warnings_created": created, "errors": errors}

    async def _create_streak_warning(self, habit: Habit, streak: HabitStreak, now: datetime) -> bool:
        user = await self.store.users.get_by_id(habit.user_id)
        if user is None or user.on_vacation or not user.get_settings().get("streak_warnings", True):
            return False
        today = local_today(now, user.timezone)
        if not await self._at_risk(habit, user.timezone, today):
            return False

        warn_at = at_local_time(today, STREAK_WARNING_TIME, user.timezone)
        if warn_at <= now:
            return False
        inserted = await self.store.scheduled_reminders.insert_if_absent(
            f"{ReminderType.STREAK_WARNING.value}:{habit.id}:{user.id}:{today.isoformat()}",
            habit_id=habit.id,
            user_id=user.id,
            scheduled_time=warn_at,
            reminder_type=ReminderType.STREAK_WARNING,
            message=(
                f"⚠️ STREAK ALERT: Your {streak.current_streak}-day streak for "
                f"\"{habit.name}\" will be reset tonight if not completed!"
            ),
            meta={"priority": "high", "streak_length": streak.current_streak, "habit_name": habit.name},
        )
        if inserted:
            await self.publisher.publish([Event(
                EventType.STREAK_WARNING,
                user.id,
                {"habit_id": habit.id, "habit_name": habit.name, "streak": streak.current_streak},
            )])
        return inserted

    async def generate_streak_preservation(self, now: datetime | None = None) -> dict:
        now = now or self.clock.now()
        checked = 0
        created = 0
        errors = 0

        for habit, streak in await self.store.streaks.get_active_streaks_above(STREAK_PRESERVATION_MIN_STREAK):
            checked += 1
            habit_id = habit.id
            try:
                async with self.store.session.begin_nested():
                    if await self._create_streak_preservation(habit, streak, now):
                        created += 1
            except Exception:
                logger.exception("Error creating streak preservation reminder for habit %s", habit_id)
                errors += 1

        return {"success": True, "habits_checked": checked, "reminders_created": created, "errors": errors}

    async def _create_streak_preservation(self, habit: Habit, streak: HabitStreak, now: datetime) -> bool:
        user = await self.store.users.get_by_id(habit.user_id)
        if user is None or user.on_vacation or not user.prefers_notifications:
            return False
        today = local_today(now, user.timezone)
        if not await self._at_risk(habit, user.timezone, today):
            return False
        if self.quiet_hours.is_quiet(user, now):
            return False

        slot = to_local(now, user.timezone).hour // STREAK_PRESERVATION_SLOT_HOURS
        inserted = await self.store.scheduled_reminders.insert_if_absent(
            f"{ReminderType.STREAK_PRESERVATION.value}:{habit.id}:{user.id}:{today.isoformat()}:{slot}",
            habit_id=habit.id,
            user_id=user.id,
            scheduled_time=now,
            reminder_type=ReminderType.STREAK_PRESERVATION,
            message=(
                f"🔥 Don't lose your {streak.current_streak}-day streak for "
                f"\"{habit.name}\"! Complete it now!"
            ),
            meta={"priority": "urgent", "streak_length": streak.current_streak, "habit_name": habit.name},
        )
        if inserted:
            await self.publisher.publish([Event(
                EventType.STREAK_PRESERVATION,
                user.id,
                {"habit_id": habit.id, "habit_name": habit.name, "streak": streak.current_streak},
            )])
        return inserted

    async def _at_risk(self, habit: Habit, tz_name: str, today: date) -> bool:
        if not await self.frequency.is_due(habit, today):
            return False
        return not await habit_completed_on(self.store.habits, habit.id, habit.user_id, today, tz_name)
