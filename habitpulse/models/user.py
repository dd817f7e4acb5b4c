import json
import logging
from datetime import date

from sqlalchemy import BigInteger, String, Integer, Boolean, Text, Date
from sqlalchemy.orm import Mapped, mapped_column

from habitpulse.models.base import Base, TimestampMixin

logger = logging.getLogger(__name__)


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    telegram_id: Mapped[int | None] = mapped_column(BigInteger, unique=True, index=True)
    username: Mapped[str | None] = mapped_column(String(255))
    first_name: Mapped[str] = mapped_column(String(255), default="")

    timezone: Mapped[str] = mapped_column(String(50), default="UTC")
    prefers_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    on_vacation: Mapped[bool] = mapped_column(Boolean, default=False)

    daily_goal: Mapped[int] = mapped_column(Integer, default=1)
    current_daily_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_daily_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_goal_check: Mapped[date | None] = mapped_column(Date)

    points: Mapped[int] = mapped_column(Integer, default=0)

    settings_json: Mapped[str | None] = mapped_column(Text)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def get_settings(self) -> dict:
        defaults = {
            "quiet_hours": {
                "enabled": False,
                "start": "22:00",
                "end": "08:00",
            },
            "streak_warnings": True,
        }
        if self.settings_json:
            try:
                saved = json.loads(self.settings_json)
            except json.JSONDecodeError:
                logger.warning("Ignoring malformed settings for user %s", self.id)
                return defaults
            for k, v in saved.items():
                if isinstance(v, dict) and isinstance(defaults.get(k), dict):
                    defaults[k].update(v)
                else:
                    defaults[k] = v
        return defaults
