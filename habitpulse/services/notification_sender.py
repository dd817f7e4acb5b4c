import logging
from abc import ABC, abstractmethod

from aiogram import Bot

from habitpulse.models.user import User
from habitpulse.utils.text import compose_message

logger = logging.getLogger(__name__)


class BaseNotificationSender(ABC):
    @abstractmethod
    async def send(self, user: User, title: str, body: str) -> None:
        pass


class TelegramNotificationSender(BaseNotificationSender):
    def __init__(self, bot: Bot):
        self.bot = bot

    async def send(self, user: User, title: str, body: str) -> None:
        if not user.telegram_id:
            raise ValueError(f"User {user.id} has no telegram chat")
        await self.bot.send_message(user.telegram_id, compose_message(title, body))
        logger.debug("Sent notification to user %s", user.id)
