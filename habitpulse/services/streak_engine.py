import logging
from datetime import date, datetime
from enum import Enum

from habitpulse.models.habit import Habit, HabitStreak
from habitpulse.models.user import User
from habitpulse.repositories.store import DataStore
from habitpulse.services.events import Event, EventPublisher, EventType
from habitpulse.services.frequency import FrequencyEvaluator
from habitpulse.utils.datetime_utils import Clock, local_day_bounds, local_yesterday

logger = logging.getLogger(__name__)

HABIT_MILESTONE_PERIOD = 7
DAILY_GOAL_MILESTONE_PERIOD = 5
DAILY_GOAL_MILESTONE_POINTS = 25
RESET_REASON_MISSED = "MISSED_COMPLETION"


class StreakOutcome(str, Enum):
    IGNORED = "ignored"
    ALREADY_EVALUATED = "already_evaluated"
    INCREASED = "increased"
    GRACE = "grace"
    RESET = "reset"
    UNCHANGED = "unchanged"


class GoalOutcome(str, Enum):
    MET = "goals_met"
    MISSED = "goals_missed"
    SKIPPED = "goals_skipped"


class StreakEngine:
    """Daily streak pass: per-habit streaks, then the per-user daily goal.

    Every day is evaluated in the owner's timezone, and always for the
    owner's local "yesterday".
    """

    def __init__(
        self,
        store: DataStore,
        clock: Clock | None = None,
        publisher: EventPublisher | None = None,
    ):
        self.store = store
        self.clock = clock or Clock()
        self.frequency = FrequencyEvaluator(store.habits)
        self.publisher = publisher or EventPublisher(store)

    async def process_daily_updates(self, now: datetime | None = None) -> dict:
        now = now or self.clock.now()
        results = {outcome.value: 0 for outcome in StreakOutcome}
        results.update({outcome.value: 0 for outcome in GoalOutcome})
        results["errors"] = 0
        results["goal_errors"] = 0

        users = await self.store.users.get_active_users()
        habits_processed = 0

        for user in users:
            user_id = user.id
            day = local_yesterday(now, user.timezone)
            try:
                async with self.store.session.begin_nested():
                    habits = await self.store.habits.get_active_habits(user_id)
            except Exception:
                logger.exception("Error loading habits for user %s", user_id)
                results["errors"] += 1
                habits = []

            for habit in habits:
                habits_processed += 1
                habit_id = habit.id
                try:
                    async with self.store.session.begin_nested():
                        outcome, events = await self.process_habit(habit, user, day)
                        await self.publisher.publish(events)
                except Exception:
                    logger.exception("Error processing streak for habit %s", habit_id)
                    results["errors"] += 1
                    await self.store.session.refresh(user)
                    continue
                results[outcome.value] += 1

            try:
                async with self.store.session.begin_nested():
                    goal, events = await self.process_daily_goal(user, day)
                    await self.publisher.publish(events)
            except Exception:
                logger.exception("Error processing daily goal for user %s", user_id)
                results["goal_errors"] += 1
                continue
            results[goal.value] += 1

        return {
            "success": True,
            "results": results,
            "message": (
                f"Processed {habits_processed} habits: {results['increased']} increased, "
                f"{results['reset']} reset, {results['grace']} in grace, {results['errors']} errors"
            ),
        }

    async def process_habit(
        self, habit: Habit, user: User, day: date
    ) -> tuple[StreakOutcome, list[Event]]:
        if not habit.is_active:
            return StreakOutcome.IGNORED, []
        if habit.skip_on_vacation and user.on_vacation:
            return StreakOutcome.IGNORED, []
        if not await self.frequency.is_due(habit, day):
            return StreakOutcome.IGNORED, []

        streak = await self.store.streaks.get_or_create(habit.id, user.id)
        if streak.last_evaluated is not None and streak.last_evaluated >= day:
            return StreakOutcome.ALREADY_EVALUATED, []

        completed = await self._was_completed(habit, user, day)
        if completed:
            outcome, events = StreakOutcome.INCREASED, self.record_completion(streak, habit, day)
        else:
            outcome, events = await self.record_miss(streak, habit, day)

        streak.last_evaluated = day
        await self.store.session.flush()
        return outcome, events

    async def _was_completed(self, habit: Habit, user: User, day: date) -> bool:
        status = await self.store.habits.get_status(habit.id, user.id, day)
        if status is None:
            status = await self.store.habits.create_status(
                habit.id, user.id, day, is_scheduled=True, is_completed=False
            )
        if status.is_completed:
            return True
        start, end = local_day_bounds(day, user.timezone)
        return await self.store.habits.has_completion_log(habit.id, user.id, day, start, end)

    @staticmethod
    def record_completion(streak: HabitStreak, habit: Habit, day: date) -> list[Event]:
        new_streak = (streak.current_streak or 0) + 1
        streak.current_streak = new_streak
        streak.longest_streak = max(streak.longest_streak or 0, new_streak)
        streak.last_completed = day
        streak.start_date = streak.start_date or day
        streak.grace_period_used = False
        streak.streak_history = [
            *(streak.streak_history or []),
            {"date": day.isoformat(), "value": new_streak},
        ]

        payload = {"habit_id": habit.id, "habit_name": habit.name, "streak": new_streak}
        events = []
        if habit.bonus_points_streak and habit.bonus_points_streak > 0:
            events.append(Event(
                EventType.STREAK_BONUS,
                streak.user_id,
                {**payload, "points": habit.bonus_points_streak * new_streak},
            ))
        if new_streak % HABIT_MILESTONE_PERIOD == 0:
            events.append(Event(EventType.HABIT_STREAK_MILESTONE, streak.user_id, payload))
        return events

    async def record_miss(
        self, streak: HabitStreak, habit: Habit, day: date
    ) -> tuple[StreakOutcome, list[Event]]:
        if not streak.current_streak:
            return StreakOutcome.UNCHANGED, []

        payload = {"habit_id": habit.id, "habit_name": habit.name}

        if habit.grace_period_enabled and not streak.grace_period_used:
            streak.grace_period_used = True
            streak.missed_days_count = (streak.missed_days_count or 0) + 1
            return StreakOutcome.GRACE, [
                Event(EventType.GRACE_PERIOD_USED, streak.user_id, {**payload, "streak": streak.current_streak})
            ]

        previous = streak.current_streak
        await self.store.streaks.create_reset(
            habit_id=habit.id,
            user_id=streak.user_id,
            reset_date=day,
            previous_streak=previous,
            reason=RESET_REASON_MISSED,
            notes=(
                f"Streak of {previous} days was reset because habit was not "
                f"completed on {day.isoformat()}"
            ),
        )
        streak.current_streak = 0
        streak.missed_days_count = (streak.missed_days_count or 0) + 1
        streak.grace_period_used = False
        streak.last_reset_reason = RESET_REASON_MISSED
        streak.start_date = None
        return StreakOutcome.RESET, [
            Event(EventType.STREAK_RESET, streak.user_id, {**payload, "previous_streak": previous})
        ]

    async def process_daily_goal(self, user: User, day: date) -> tuple[GoalOutcome, list[Event]]:
        if user.on_vacation:
            return GoalOutcome.SKIPPED, []
        if user.daily_goal is None:
            return GoalOutcome.SKIPPED, []
        if user.last_goal_check is not None and user.last_goal_check >= day:
            return GoalOutcome.SKIPPED, []

        start, end = local_day_bounds(day, user.timezone)
        completed_ids = await self.store.habits.get_completed_habit_ids(user.id, day, start, end)
        user.last_goal_check = day

        if len(completed_ids) < user.daily_goal:
            user.current_daily_streak = 0
            await self.store.session.flush()
            return GoalOutcome.MISSED, []

        new_streak = (user.current_daily_streak or 0) + 1
        user.current_daily_streak = new_streak
        user.longest_daily_streak = max(user.longest_daily_streak or 0, new_streak)
        await self.store.session.flush()

        events = []
        if new_streak % DAILY_GOAL_MILESTONE_PERIOD == 0:
            points = DAILY_GOAL_MILESTONE_POINTS * (new_streak // DAILY_GOAL_MILESTONE_PERIOD)
            events.append(Event(
                EventType.DAILY_GOAL_MILESTONE,
                user.id,
                {"streak": new_streak, "points": points, "completed": len(completed_ids)},
            ))
        return GoalOutcome.MET, events
