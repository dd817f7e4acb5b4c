from datetime import date, datetime
from enum import Enum

from sqlalchemy import Integer, String, Boolean, ForeignKey, Date, Index, JSON, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from habitpulse.models.base import Base, TimestampMixin, UTCDateTime, utcnow


class FrequencyType(str, Enum):
    DAILY = "DAILY"
    WEEKDAYS = "WEEKDAYS"
    WEEKENDS = "WEEKENDS"
    SPECIFIC_DAYS = "SPECIFIC_DAYS"
    INTERVAL = "INTERVAL"
    X_TIMES_WEEK = "X_TIMES_WEEK"
    X_TIMES_MONTH = "X_TIMES_MONTH"


class Habit(Base, TimestampMixin):
    __tablename__ = "habits"
    __table_args__ = (
        Index("ix_habits_user_active", "user_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    emoji: Mapped[str] = mapped_column(String(10), default="✅")

    frequency_type: Mapped[FrequencyType] = mapped_column(
        SAEnum(FrequencyType), default=FrequencyType.DAILY
    )
    # Weekday numbers, Monday = 0 .. Sunday = 6.
    specific_days: Mapped[list[int] | None] = mapped_column(JSON)
    frequency_interval: Mapped[int | None] = mapped_column(Integer)
    frequency_value: Mapped[int | None] = mapped_column(Integer)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    skip_on_vacation: Mapped[bool] = mapped_column(Boolean, default=True)
    grace_period_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    bonus_points_streak: Mapped[int] = mapped_column(Integer, default=0)


class HabitLog(Base):
    __tablename__ = "habit_logs"
    __table_args__ = (
        Index("ix_habit_logs_habit_date", "habit_id", "log_date", unique=True),
        Index("ix_habit_logs_user_date", "user_id", "log_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    habit_id: Mapped[int] = mapped_column(
        ForeignKey("habits.id", ondelete="CASCADE")
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )

    log_date: Mapped[date] = mapped_column(Date, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=True)
    completed_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)


class HabitDailyStatus(Base):
    __tablename__ = "habit_daily_statuses"
    __table_args__ = (
        Index("ix_daily_status_habit_user_day", "habit_id", "user_id", "day", unique=True),
        Index("ix_daily_status_user_day", "user_id", "day"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    habit_id: Mapped[int] = mapped_column(
        ForeignKey("habits.id", ondelete="CASCADE")
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )

    day: Mapped[date] = mapped_column(Date, nullable=False)
    is_scheduled: Mapped[bool] = mapped_column(Boolean, default=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    is_skipped: Mapped[bool] = mapped_column(Boolean, default=False)


class HabitStreak(Base, TimestampMixin):
    __tablename__ = "habit_streaks"
    __table_args__ = (
        Index("ix_habit_streaks_habit_user", "habit_id", "user_id", unique=True),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    habit_id: Mapped[int] = mapped_column(
        ForeignKey("habits.id", ondelete="CASCADE")
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )

    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_completed: Mapped[date | None] = mapped_column(Date)
    grace_period_used: Mapped[bool] = mapped_column(Boolean, default=False)
    missed_days_count: Mapped[int] = mapped_column(Integer, default=0)
    start_date: Mapped[date | None] = mapped_column(Date)
    last_reset_reason: Mapped[str | None] = mapped_column(String(50))
    last_evaluated: Mapped[date | None] = mapped_column(Date)

    streak_history: Mapped[list[dict]] = mapped_column(JSON, default=list)


class HabitReset(Base):
    __tablename__ = "habit_resets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    habit_id: Mapped[int] = mapped_column(
        ForeignKey("habits.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )

    reset_date: Mapped[date] = mapped_column(Date, nullable=False)
    previous_streak: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(50))
    user_initiated: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
