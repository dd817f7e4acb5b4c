"""Tests for delivering due reminders."""

from __future__ import annotations

import json
from datetime import date, time, timedelta

import pytest

from habitpulse.models import ReminderType, ScheduledReminder, SendStatus
from habitpulse.services.notification_sender import TelegramNotificationSender
from habitpulse.services.reminder_dispatcher import ReminderDispatcher
from habitpulse.utils.text import TELEGRAM_MESSAGE_LIMIT, compose_message

from helpers import FailingSender, utc

NIGHT_QUIET = json.dumps({"quiet_hours": {"enabled": True, "start": "22:00", "end": "08:00"}})


@pytest.mark.asyncio
async def test_completed_habit_reminder_is_skipped(factory, store, clock, sender) -> None:
    """A reminder for a habit finished before it fired is closed as skipped."""
    user = await factory.user()
    habit = await factory.habit(user)
    reminder = await factory.reminder(habit, utc(2024, 1, 15, 9, 0))
    await factory.log(habit, date(2024, 1, 15), completed_at=utc(2024, 1, 15, 8, 50))

    result = await ReminderDispatcher(store, sender, clock).process_due(utc(2024, 1, 15, 9, 5))

    assert result["results"]["skipped"] == 1
    assert reminder.is_sent is True
    assert reminder.send_status == SendStatus.SKIPPED_COMPLETED
    assert sender.sent == []


@pytest.mark.asyncio
async def test_due_reminder_is_sent_and_rewarded(factory, store, clock, sender) -> None:
    """A due reminder is delivered once and earns a point."""
    user = await factory.user()
    habit = await factory.habit(user)
    reminder = await factory.reminder(habit, utc(2024, 1, 15, 9, 0))
    now = utc(2024, 1, 15, 9, 5)

    result = await ReminderDispatcher(store, sender, clock).process_due(now)

    entries = await store.points.get_for_user(user.id)
    assert result == {
        "success": True,
        "results": {"processed": 1, "sent": 1, "skipped": 0, "failed": 0},
    }
    assert reminder.send_status == SendStatus.SENT
    assert reminder.actual_send_time == now
    assert sender.sent == [(user.id, "Habit Reminder", "Time to complete your habit: Read")]
    assert [(e.points, e.source_type, e.source_id) for e in entries] == [(1, "SYSTEM_BONUS", reminder.id)]
    assert user.points == 1


@pytest.mark.asyncio
async def test_quiet_hours_suppress_delivery(factory, store, clock, sender) -> None:
    """Reminders due inside quiet hours are closed without sending."""
    user = await factory.user(settings_json=NIGHT_QUIET)
    habit = await factory.habit(user)
    reminder = await factory.reminder(habit, utc(2024, 1, 15, 23, 0))

    await ReminderDispatcher(store, sender, clock).process_due(utc(2024, 1, 15, 23, 30))

    assert reminder.send_status == SendStatus.SKIPPED_QUIET_HOURS
    assert sender.sent == []


@pytest.mark.asyncio
async def test_send_failure_is_recorded(factory, store, clock) -> None:
    """Sender errors close the reminder as failed with the reason."""
    user = await factory.user()
    habit = await factory.habit(user)
    reminder = await factory.reminder(habit, utc(2024, 1, 15, 9, 0))
    sender = FailingSender("telegram down")

    result = await ReminderDispatcher(store, sender, clock).process_due(utc(2024, 1, 15, 9, 5))

    assert result["results"]["failed"] == 1
    assert reminder.is_sent is True
    assert reminder.send_status == SendStatus.FAILED
    assert reminder.failure_reason == "telegram down"
    assert await store.points.get_for_user(user.id) == []


@pytest.mark.asyncio
async def test_reminders_close_at_most_once(factory, store, clock) -> None:
    """A closed reminder is not picked up again, even after a failure."""
    user = await factory.user()
    habit = await factory.habit(user)
    await factory.reminder(habit, utc(2024, 1, 15, 9, 0))
    sender = FailingSender()
    dispatcher = ReminderDispatcher(store, sender, clock)

    await dispatcher.process_due(utc(2024, 1, 15, 9, 5))
    second = await dispatcher.process_due(utc(2024, 1, 15, 9, 20))

    assert second["results"]["processed"] == 0
    assert sender.attempts == 1


@pytest.mark.asyncio
async def test_future_reminders_wait(factory, store, clock, sender) -> None:
    """Reminders scheduled after now are left pending."""
    user = await factory.user()
    habit = await factory.habit(user)
    reminder = await factory.reminder(habit, utc(2024, 1, 15, 10, 0))

    result = await ReminderDispatcher(store, sender, clock).process_due(utc(2024, 1, 15, 9, 5))

    assert result["results"]["processed"] == 0
    assert reminder.is_sent is False


@pytest.mark.asyncio
async def test_already_closed_reminder_keeps_status(factory, store, clock, sender) -> None:
    """Processing a closed reminder directly returns its existing status."""
    user = await factory.user()
    habit = await factory.habit(user)
    reminder = await factory.reminder(
        habit, utc(2024, 1, 15, 9, 0), is_sent=True, send_status=SendStatus.DISMISSED_BY_USER
    )

    status = await ReminderDispatcher(store, sender, clock).process_reminder(reminder)

    assert status == SendStatus.DISMISSED_BY_USER
    assert sender.sent == []


@pytest.mark.asyncio
async def test_test_reminder_bypasses_quiet_hours(factory, store, clock, sender) -> None:
    """A test reminder is delivered during quiet hours without points."""
    user = await factory.user(settings_json=NIGHT_QUIET)
    habit = await factory.habit(user)
    config = await factory.config(habit, time(9, 0))
    clock.current = utc(2024, 1, 15, 23, 30)

    status = await ReminderDispatcher(store, sender, clock).send_test(config.id, user.id)

    reminders = await store.scheduled_reminders.get_for_habit(habit.id)
    assert status == SendStatus.SENT
    assert len(sender.sent) == 1
    assert reminders[0].is_test is True
    assert reminders[0].dedup_key is None
    assert await store.points.get_for_user(user.id) == []


@pytest.mark.asyncio
async def test_test_reminder_requires_owner(factory, store, clock, sender) -> None:
    """Another user's configuration cannot be tested."""
    user = await factory.user()
    other = await factory.user()
    habit = await factory.habit(user)
    config = await factory.config(habit, time(9, 0))

    assert await ReminderDispatcher(store, sender, clock).send_test(config.id, other.id) is None


@pytest.mark.asyncio
async def test_dismiss(factory, store, clock, sender) -> None:
    """Users can dismiss their own pending reminders only."""
    user = await factory.user()
    other = await factory.user()
    habit = await factory.habit(user)
    reminder = await factory.reminder(habit, utc(2024, 1, 15, 9, 0))
    dispatcher = ReminderDispatcher(store, sender, clock)

    assert await dispatcher.dismiss(reminder.id, other.id) is False
    assert await dispatcher.dismiss(reminder.id, user.id) is True
    result = await dispatcher.process_due(utc(2024, 1, 15, 9, 5))

    assert reminder.send_status == SendStatus.DISMISSED_BY_USER
    assert result["results"]["processed"] == 0
    assert sender.sent == []


@pytest.mark.asyncio
async def test_upcoming_lists_rest_of_today(factory, store, clock, sender) -> None:
    """Upcoming reminders run from now to the end of the local day."""
    user = await factory.user()
    habit = await factory.habit(user)
    await factory.reminder(habit, utc(2024, 1, 15, 5, 0))
    later = await factory.reminder(habit, utc(2024, 1, 15, 18, 0))
    await factory.reminder(habit, utc(2024, 1, 16, 9, 0))

    upcoming = await ReminderDispatcher(store, sender, clock).get_upcoming(user.id)

    assert [r.id for r in upcoming] == [later.id]


@pytest.mark.asyncio
async def test_unwritable_skip_is_recorded_as_failed(factory, store, clock, sender, monkeypatch) -> None:
    """A skip that cannot be stored closes as failed and the next reminder still goes out."""
    user = await factory.user()
    done = await factory.habit(user, name="Walk")
    pending = await factory.habit(user, name="Read")
    skipped = await factory.reminder(done, utc(2024, 1, 15, 9, 0))
    delivered = await factory.reminder(pending, utc(2024, 1, 15, 9, 0))
    await factory.log(done, date(2024, 1, 15), completed_at=utc(2024, 1, 15, 8, 50))
    close = store.scheduled_reminders.close

    async def unwritable(reminder, status, closed_at, failure_reason=None):
        if status == SendStatus.SKIPPED_COMPLETED:
            reminder.message = None
        return await close(reminder, status, closed_at, failure_reason)

    monkeypatch.setattr(store.scheduled_reminders, "close", unwritable)

    result = await ReminderDispatcher(store, sender, clock).process_due(utc(2024, 1, 15, 9, 5))

    assert result["results"] == {"processed": 2, "sent": 1, "skipped": 0, "failed": 1}
    assert skipped.is_sent is True
    assert skipped.send_status == SendStatus.FAILED
    assert "NOT NULL" in skipped.failure_reason
    assert skipped.message == "Time to complete your habit: Walk"
    assert delivered.send_status == SendStatus.SENT
    assert sender.sent == [(user.id, "Habit Reminder", "Time to complete your habit: Read")]


@pytest.mark.asyncio
async def test_failed_reward_keeps_reminder_sent(factory, store, clock, sender, monkeypatch) -> None:
    """Delivery stands when its points cannot be stored, so the reminder is not sent again."""
    user = await factory.user()
    habit = await factory.habit(user)
    reminder = await factory.reminder(habit, utc(2024, 1, 15, 9, 0))
    user_id = user.id
    create_entry = store.points.create_entry

    async def unreasoned(**kwargs):
        return await create_entry(**{**kwargs, "reason": None})

    monkeypatch.setattr(store.points, "create_entry", unreasoned)
    dispatcher = ReminderDispatcher(store, sender, clock)

    first = await dispatcher.process_due(utc(2024, 1, 15, 9, 5))
    second = await dispatcher.process_due(utc(2024, 1, 15, 9, 20))

    assert first["results"]["sent"] == 1
    assert second["results"]["processed"] == 0
    assert reminder.send_status == SendStatus.SENT
    assert len(sender.sent) == 1
    assert await store.points.get_for_user(user_id) == []


@pytest.mark.asyncio
async def test_whole_backlog_is_delivered_in_one_run(factory, store, clock, sender) -> None:
    """Every overdue reminder is picked up, however large the backlog."""
    user = await factory.user()
    habit = await factory.habit(user)
    start = utc(2024, 1, 14, 0, 0)
    store.session.add_all([
        ScheduledReminder(
            habit_id=habit.id,
            user_id=user.id,
            scheduled_time=start + timedelta(minutes=i),
            reminder_type=ReminderType.PRIMARY,
            message="Catch up",
            is_sent=False,
            meta={},
            dedup_key=f"backlog:{habit.id}:{i}",
        )
        for i in range(501)
    ])
    await store.session.flush()

    result = await ReminderDispatcher(store, sender, clock).process_due(utc(2024, 1, 15, 9, 5))

    assert result["results"]["processed"] == 501
    assert len(sender.sent) == 501
    assert await store.scheduled_reminders.get_due(utc(2024, 1, 15, 9, 5)) == []


class StubBot:
    def __init__(self):
        self.messages = []

    async def send_message(self, chat_id, text):
        self.messages.append((chat_id, text))


@pytest.mark.asyncio
async def test_telegram_sender(factory) -> None:
    """The Telegram sender posts title and body to the user's chat."""
    user = await factory.user(telegram_id=42)
    bot = StubBot()

    await TelegramNotificationSender(bot).send(user, "Habit Reminder", "Time to read")

    assert bot.messages == [(42, "Habit Reminder\n\nTime to read")]


@pytest.mark.asyncio
async def test_telegram_sender_requires_chat(factory) -> None:
    """Users without a linked chat cannot be reached."""
    user = await factory.user(telegram_id=None)

    with pytest.raises(ValueError):
        await TelegramNotificationSender(StubBot()).send(user, "Habit Reminder", "Time to read")


def test_compose_message_truncates_long_bodies() -> None:
    """Messages over the Telegram limit are cut with an ellipsis."""
    message = compose_message("Habit Reminder", "x" * 5000)

    assert len(message) == TELEGRAM_MESSAGE_LIMIT
    assert message.startswith("Habit Reminder\n\nxxx")
    assert message.endswith("...")
    assert compose_message("Habit Reminder", "  ") == "Habit Reminder"
