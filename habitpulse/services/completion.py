from datetime import date

from habitpulse.repositories.habit_repo import HabitRepository
from habitpulse.utils.datetime_utils import local_day_bounds


async def habit_completed_on(
    habit_repo: HabitRepository,
    habit_id: int,
    user_id: int,
    day: date,
    tz_name: str | None,
) -> bool:
    status = await habit_repo.get_status(habit_id, user_id, day)
    if status is not None and status.is_completed:
        return True
    start, end = local_day_bounds(day, tz_name)
    return await habit_repo.has_completion_log(habit_id, user_id, day, start, end)
