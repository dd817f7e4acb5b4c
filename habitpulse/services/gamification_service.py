from habitpulse.repositories.store import DataStore

POINT_SOURCES = {
    "streak_milestone": "STREAK_MILESTONE",
    "reminder_received": "SYSTEM_BONUS",
}


class GamificationService:
    def __init__(self, store: DataStore):
        self.store = store

    async def award_points(
        self,
        user_id: int,
        points: int,
        reason: str,
        description: str | None = None,
        source_type: str | None = None,
        source_id: int | None = None,
    ) -> int:
        if points == 0:
            user = await self.store.users.get_by_id(user_id)
            return user.points

        await self.store.points.create_entry(
            user_id=user_id,
            points=points,
            reason=reason,
            description=description,
            source_type=source_type,
            source_id=source_id,
        )

        user = await self.store.users.get_by_id(user_id)
        await self.store.users.add_points(user, points)
        return user.points

    async def notify(
        self,
        user_id: int,
        title: str,
        content: str,
        type: str,
        related_id: int | None = None,
        action_url: str | None = None,
    ):
        return await self.store.notifications.create_notification(
            user_id=user_id,
            title=title,
            content=content,
            type=type,
            related_id=related_id,
            action_url=action_url,
        )
