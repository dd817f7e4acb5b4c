from datetime import datetime
from sqlalchemy import select, delete, and_
from sqlalchemy.dialects import postgresql, sqlite

from habitpulse.models.reminder import HabitReminder, ScheduledReminder, ReminderType, SendStatus
from habitpulse.repositories.base import BaseRepository

UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class ReminderConfigRepository(BaseRepository):
    model = HabitReminder

    async def get_enabled_configs(self, habit_id: int, user_id: int) -> list[HabitReminder]:
        stmt = (
            select(HabitReminder)
            .where(
                and_(
                    HabitReminder.habit_id == habit_id,
                    HabitReminder.user_id == user_id,
                    HabitReminder.is_enabled == True,
                )
            )
            .order_by(HabitReminder.reminder_time, HabitReminder.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class ScheduledReminderRepository(BaseRepository):
    model = ScheduledReminder

    async def insert_if_absent(self, dedup_key: str, **values) -> bool:
        """Insert a reminder unless one with the same ``dedup_key`` exists.

        Returns True when a row was written.
        """
        insert = UPSERT_DIALECTS.get(self.dialect_name)
        if insert is None:
            raise NotImplementedError(f"Unsupported dialect: {self.dialect_name}")
        values.setdefault("is_sent", False)
        values.setdefault("meta", {})
        stmt = (
            insert(ScheduledReminder.__table__)
            .values(dedup_key=dedup_key, **values)
            .on_conflict_do_nothing(index_elements=["dedup_key"])
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def get_due(self, now: datetime) -> list[ScheduledReminder]:
        stmt = (
            select(ScheduledReminder)
            .where(
                and_(
                    ScheduledReminder.scheduled_time <= now,
                    ScheduledReminder.is_sent == False,
                )
            )
            .order_by(ScheduledReminder.scheduled_time, ScheduledReminder.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_upcoming(
        self, user_id: int, since: datetime, until: datetime, include_sent: bool = False
    ) -> list[ScheduledReminder]:
        filters = [
            ScheduledReminder.user_id == user_id,
            ScheduledReminder.scheduled_time >= since,
            ScheduledReminder.scheduled_time <= until,
        ]
        if not include_sent:
            filters.append(ScheduledReminder.is_sent == False)
        stmt = (
            select(ScheduledReminder)
            .where(and_(*filters))
            .order_by(ScheduledReminder.scheduled_time, ScheduledReminder.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_habit(
        self, habit_id: int, reminder_type: ReminderType | None = None
    ) -> list[ScheduledReminder]:
        filters = [ScheduledReminder.habit_id == habit_id]
        if reminder_type is not None:
            filters.append(ScheduledReminder.reminder_type == reminder_type)
        stmt = (
            select(ScheduledReminder)
            .where(and_(*filters))
            .order_by(ScheduledReminder.scheduled_time, ScheduledReminder.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def close(
        self,
        reminder: ScheduledReminder,
        status: SendStatus,
        closed_at: datetime,
        failure_reason: str | None = None,
    ) -> ScheduledReminder:
        reminder.is_sent = True
        reminder.send_status = status
        reminder.actual_send_time = closed_at
        reminder.failure_reason = failure_reason
        await self.session.flush()
        return reminder

    async def delete_pending_for_config(self, config_id: int) -> int:
        stmt = delete(ScheduledReminder).where(
            and_(
                ScheduledReminder.reminder_config_id == config_id,
                ScheduledReminder.is_sent == False,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount
