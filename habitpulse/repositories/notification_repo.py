from sqlalchemy import select

from habitpulse.models.gamification import Notification, PointsLog
from habitpulse.repositories.base import BaseRepository


class NotificationRepository(BaseRepository):
    model = Notification

    async def create_notification(
        self,
        user_id: int,
        title: str,
        content: str,
        type: str,
        related_id: int | None = None,
        action_url: str | None = None,
    ) -> Notification:
        return await self.create(
            user_id=user_id,
            title=title,
            content=content,
            type=type,
            related_id=related_id,
            action_url=action_url,
            is_read=False,
        )

    async def get_for_user(self, user_id: int, limit: int = 50) -> list[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class PointsRepository(BaseRepository):
    model = PointsLog

    async def create_entry(
        self,
        user_id: int,
        points: int,
        reason: str,
        description: str | None = None,
        source_type: str | None = None,
        source_id: int | None = None,
    ) -> PointsLog:
        return await self.create(
            user_id=user_id,
            points=points,
            reason=reason,
            description=description,
            source_type=source_type,
            source_id=source_id,
        )

    async def get_for_user(self, user_id: int) -> list[PointsLog]:
        stmt = (
            select(PointsLog)
            .where(PointsLog.user_id == user_id)
            .order_by(PointsLog.created_at, PointsLog.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
