import logging
from dataclasses import dataclass, field
from enum import Enum

from habitpulse.repositories.store import DataStore
from habitpulse.services.gamification_service import GamificationService, POINT_SOURCES

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    HABIT_STREAK_MILESTONE = "HABIT_STREAK_MILESTONE"
    STREAK_BONUS = "STREAK_BONUS"
    GRACE_PERIOD_USED = "GRACE_PERIOD_USED"
    STREAK_RESET = "STREAK_RESET"
    DAILY_GOAL_MILESTONE = "DAILY_GOAL_MILESTONE"
    STREAK_WARNING = "STREAK_WARNING"
    STREAK_PRESERVATION = "STREAK_PRESERVATION"
    REMINDER_RECEIVED = "REMINDER_RECEIVED"


@dataclass(frozen=True)
class Event:
    type: EventType
    user_id: int
    payload: dict = field(default_factory=dict)


class EventPublisher:
    """Turns engine events into Notification and PointsLog rows."""

    def __init__(self, store: DataStore):
        self.gamification = GamificationService(store)

    async def publish(self, events: list[Event]) -> int:
        for event in events:
            handler = getattr(self, f"_on_{event.type.value.lower()}")
            await handler(event)
        if events:
            logger.debug("Published %d events", len(events))
        return len(events)

    async def _on_habit_streak_milestone(self, event: Event):
        p = event.payload
        await self.gamification.notify(
            event.user_id,
            title="Habit Streak Milestone!",
            content=f"You've completed \"{p['habit_name']}\" for {p['streak']} days in a row! Keep it up!",
            type="STREAK_MILESTONE",
            related_id=p["habit_id"],
            action_url=f"/habits/{p['habit_id']}",
        )

    async def _on_streak_bonus(self, event: Event):
        p = event.payload
        await self.gamification.award_points(
            event.user_id,
            p["points"],
            reason=f"Streak bonus for \"{p['habit_name']}\"",
            description=f"{p['streak']} day streak bonus",
            source_type=POINT_SOURCES["streak_milestone"],
            source_id=p["habit_id"],
        )

    async def _on_grace_period_used(self, event: Event):
        p = event.payload
        await self.gamification.notify(
            event.user_id,
            title="Grace Period Used",
            content=(
                f"You missed \"{p['habit_name']}\" yesterday. Your streak is safe for now, "
                f"but you need to complete it today to keep your {p['streak']} day streak!"
            ),
            type="SYSTEM_MESSAGE",
            related_id=p["habit_id"],
            action_url=f"/habits/{p['habit_id']}",
        )

    async def _on_streak_reset(self, event: Event):
        p = event.payload
        await self.gamification.notify(
            event.user_id,
            title="Streak Reset",
            content=(
                f"Your {p['previous_streak']} day streak for \"{p['habit_name']}\" has been reset "
                f"because you didn't complete it yesterday."
            ),
            type="SYSTEM_MESSAGE",
            related_id=p["habit_id"],
            action_url=f"/habits/{p['habit_id']}",
        )

    async def _on_daily_goal_milestone(self, event: Event):
        p = event.payload
        await self.gamification.award_points(
            event.user_id,
            p["points"],
            reason=f"{p['streak']} day streak milestone!",
            description=f"Completed your daily goal for {p['streak']} days in a row",
            source_type=POINT_SOURCES["streak_milestone"],
        )
        await self.gamification.notify(
            event.user_id,
            title="Streak Milestone!",
            content=(
                f"Congratulations on maintaining your daily goals for {p['streak']} days! "
                f"You earned {p['points']} points."
            ),
            type="STREAK_MILESTONE",
            action_url="/stats",
        )

    async def _on_streak_warning(self, event: Event):
        p = event.payload
        await self.gamification.notify(
            event.user_id,
            title="Streak at Risk!",
            content=(
                f"Your {p['streak']}-day streak for \"{p['habit_name']}\" will be reset "
                f"if you don't complete it today!"
            ),
            type="STREAK_MILESTONE",
            related_id=p["habit_id"],
            action_url=f"/habits/{p['habit_id']}",
        )

    async def _on_streak_preservation(self, event: Event):
        p = event.payload
        await self.gamification.notify(
            event.user_id,
            title="Urgent Habit Reminder",
            content=f"🔥 Don't lose your {p['streak']}-day streak for \"{p['habit_name']}\"! Complete it now!",
            type="REMINDER",
            related_id=p["habit_id"],
            action_url=f"/habits/{p['habit_id']}",
        )

    async def _on_reminder_received(self, event: Event):
        p = event.payload
        await self.gamification.award_points(
            event.user_id,
            p["points"],
            reason="Reminder received",
            source_type=POINT_SOURCES["reminder_received"],
            source_id=p["scheduled_reminder_id"],
        )
