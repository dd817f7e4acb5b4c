from aiogram import Bot
from aiogram.client.default import DefaultBotProperties

from habitpulse.config import settings


def create_bot() -> Bot:
    return Bot(token=settings.BOT_TOKEN, default=DefaultBotProperties())
