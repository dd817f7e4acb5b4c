import logging
from datetime import date

from habitpulse.models.habit import FrequencyType, Habit, HabitDailyStatus
from habitpulse.repositories.habit_repo import HabitRepository

logger = logging.getLogger(__name__)

WEEKDAYS = frozenset(range(0, 5))
WEEKEND_DAYS = frozenset({5, 6})

# Quota rules: which days count toward the weekly/monthly target is decided
# outside the engine and persisted as HabitDailyStatus rows.
QUOTA_FREQUENCIES = frozenset({FrequencyType.X_TIMES_WEEK, FrequencyType.X_TIMES_MONTH})


def within_active_period(habit: Habit, day: date) -> bool:
    if day < habit.start_date:
        return False
    if habit.end_date is not None and day > habit.end_date:
        return False
    return True


def is_due_by_rule(habit: Habit, day: date) -> bool | None:
    """Evaluate the static frequency rule for ``day``.

    Returns None for quota rules, whose answer lives in HabitDailyStatus.
    """
    if not within_active_period(habit, day):
        return False

    frequency = FrequencyType(habit.frequency_type)
    weekday = day.weekday()

    if frequency == FrequencyType.DAILY:
        return True
    if frequency == FrequencyType.WEEKDAYS:
        return weekday in WEEKDAYS
    if frequency == FrequencyType.WEEKENDS:
        return weekday in WEEKEND_DAYS
    if frequency == FrequencyType.SPECIFIC_DAYS:
        return weekday in set(habit.specific_days or [])
    if frequency == FrequencyType.INTERVAL:
        interval = habit.frequency_interval or 1
        if interval < 1:
            interval = 1
        return (day - habit.start_date).days % interval == 0
    if frequency in QUOTA_FREQUENCIES:
        return None
    return False


def is_due(habit: Habit, day: date, status: HabitDailyStatus | None = None) -> bool:
    due = is_due_by_rule(habit, day)
    if due is not None:
        return due
    # Undecided quota day: no status row means no slot was assigned, so not due.
    return bool(status is not None and status.is_scheduled)


class FrequencyEvaluator:
    def __init__(self, habit_repo: HabitRepository):
        self.habit_repo = habit_repo

    async def is_due(self, habit: Habit, day: date) -> bool:
        due = is_due_by_rule(habit, day)
        if due is not None:
            return due
        status = await self.habit_repo.get_status(habit.id, habit.user_id, day)
        if status is None:
            logger.debug(
                "Habit %s has no quota slot for %s, treating as not due", habit.id, day
            )
        return is_due(habit, day, status)
