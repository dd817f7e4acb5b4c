from habitpulse.models.base import Base
from habitpulse.models.user import User
from habitpulse.models.habit import (
    FrequencyType, Habit, HabitLog, HabitDailyStatus, HabitStreak, HabitReset,
)
from habitpulse.models.reminder import ReminderType, SendStatus, HabitReminder, ScheduledReminder
from habitpulse.models.gamification import Notification, PointsLog
