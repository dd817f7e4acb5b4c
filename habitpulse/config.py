from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    BOT_TOKEN: str
    DATABASE_URL: str

    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "UTC"

    STREAK_JOB_HOUR: int = 0
    REMINDER_PREPARE_HOUR: int = 23
    REMINDER_DISPATCH_MINUTES: int = 15
    STREAK_WARNING_HOUR: int = 9
    STREAK_PRESERVATION_HOURS: str = "10,12,14,16,18,20"

    JOB_TIMEOUT_SECONDS: int = 300

    @property
    def preservation_hours(self) -> str:
        return ",".join(h.strip() for h in self.STREAK_PRESERVATION_HOURS.split(",") if h.strip())

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
