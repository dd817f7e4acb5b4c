from sqlalchemy import select, and_

from habitpulse.models.user import User
from habitpulse.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    model = User

    async def get_active_users(self) -> list[User]:
        stmt = select(User).where(User.is_active == True).order_by(User.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_notifiable_users(self) -> list[User]:
        stmt = (
            select(User)
            .where(
                and_(
                    User.is_active == True,
                    User.prefers_notifications == True,
                    User.on_vacation == False,
                )
            )
            .order_by(User.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_points(self, user: User, points: int) -> User:
        user.points = max(0, (user.points or 0) + points)
        await self.session.flush()
        return user
