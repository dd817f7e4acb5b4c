from datetime import datetime, time
from enum import Enum

from sqlalchemy import Integer, String, Boolean, ForeignKey, Index, JSON, Text, Time
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from habitpulse.models.base import Base, TimestampMixin, UTCDateTime, utcnow


class ReminderType(str, Enum):
    PRIMARY = "PRIMARY"
    PRE_NOTIFICATION = "PRE_NOTIFICATION"
    STREAK_WARNING = "STREAK_WARNING"
    STREAK_PRESERVATION = "STREAK_PRESERVATION"


class SendStatus(str, Enum):
    SENT = "SENT"
    SKIPPED_COMPLETED = "SKIPPED_COMPLETED"
    SKIPPED_QUIET_HOURS = "SKIPPED_QUIET_HOURS"
    DISMISSED_BY_USER = "DISMISSED_BY_USER"
    FAILED = "FAILED"


class HabitReminder(Base, TimestampMixin):
    __tablename__ = "habit_reminders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    habit_id: Mapped[int] = mapped_column(
        ForeignKey("habits.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )

    reminder_time: Mapped[time] = mapped_column(Time, nullable=False)
    repeat: Mapped[str] = mapped_column(String(20), default="DAILY")
    notification_message: Mapped[str | None] = mapped_column(String(500))
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    pre_notification_minutes: Mapped[int] = mapped_column(Integer, default=10)
    follow_up_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    follow_up_minutes: Mapped[int] = mapped_column(Integer, default=30)
    smart_reminder: Mapped[bool] = mapped_column(Boolean, default=False)


class ScheduledReminder(Base):
    __tablename__ = "scheduled_reminders"
    __table_args__ = (
        Index("ix_scheduled_reminders_due", "is_sent", "scheduled_time"),
        Index("ix_scheduled_reminders_user_time", "user_id", "scheduled_time"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    habit_id: Mapped[int | None] = mapped_column(
        ForeignKey("habits.id", ondelete="CASCADE")
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )
    reminder_config_id: Mapped[int | None] = mapped_column(
        ForeignKey("habit_reminders.id", ondelete="SET NULL")
    )

    scheduled_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    reminder_type: Mapped[ReminderType] = mapped_column(
        SAEnum(ReminderType), default=ReminderType.PRIMARY
    )
    message: Mapped[str] = mapped_column(String(500))

    is_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    send_status: Mapped[SendStatus | None] = mapped_column(SAEnum(SendStatus))
    actual_send_time: Mapped[datetime | None] = mapped_column(UTCDateTime)
    failure_reason: Mapped[str | None] = mapped_column(Text)

    meta: Mapped[dict] = mapped_column(JSON, default=dict)
    # Unique per materialized slot; NULL for ad-hoc (test) reminders.
    dedup_key: Mapped[str | None] = mapped_column(String(255), unique=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    @property
    def is_test(self) -> bool:
        return bool((self.meta or {}).get("is_test"))
