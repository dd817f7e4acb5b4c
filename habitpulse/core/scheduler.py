import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from habitpulse.config import settings
from habitpulse.repositories.store import DataStore
from habitpulse.services.notification_sender import BaseNotificationSender
from habitpulse.services.reminder_dispatcher import ReminderDispatcher
from habitpulse.services.reminder_generator import ReminderGenerator
from habitpulse.services.streak_engine import StreakEngine
from habitpulse.utils.datetime_utils import Clock

logger = logging.getLogger(__name__)

JobFunc = Callable[[DataStore, datetime], Awaitable[dict]]


class HabitScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sender: BaseNotificationSender,
        clock: Clock | None = None,
        job_timeout: float | None = None,
    ):
        self.session_factory = session_factory
        self.sender = sender
        self.clock = clock or Clock()
        self.job_timeout = job_timeout if job_timeout is not None else settings.JOB_TIMEOUT_SECONDS
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.jobs: dict[str, JobFunc] = {
            "daily_streak_update": self._streak_job,
            "prepare_next_day_reminders": self._prepare_job,
            "process_reminders": self._dispatch_job,
            "streak_warning_check": self._warning_job,
            "streak_preservation_reminder": self._preservation_job,
        }

    def start(self):
        if self.scheduler.running:
            return
        self._add("daily_streak_update", "cron", hour=settings.STREAK_JOB_HOUR, minute=0)
        self._add("prepare_next_day_reminders", "cron", hour=settings.REMINDER_PREPARE_HOUR, minute=0)
        self._add("process_reminders", "interval", minutes=settings.REMINDER_DISPATCH_MINUTES)
        self._add("streak_warning_check", "cron", hour=settings.STREAK_WARNING_HOUR, minute=0)
        self._add("streak_preservation_reminder", "cron", hour=settings.preservation_hours, minute=0)
        self.scheduler.start()
        logger.info("Scheduler started with jobs: %s", ", ".join(self.jobs))

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def _add(self, job_id: str, trigger: str, **trigger_args):
        self.scheduler.add_job(
            self.run_once,
            trigger,
            args=[job_id],
            id=job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            **trigger_args,
        )

    async def run_once(self, job_id: str, now: datetime | None = None) -> dict:
        job = self.jobs.get(job_id)
        if job is None:
            raise KeyError(f"Unknown job: {job_id}")

        now = now or self.clock.now()
        logger.info("[%s] started", job_id)
        started = time.monotonic()

        async with self.session_factory() as session:
            store = DataStore(session)
            try:
                result = await asyncio.wait_for(job(store, now), timeout=self.job_timeout)
                await store.commit()
            except Exception as e:
                await store.rollback()
                logger.exception("[%s] failed", job_id)
                return {"success": False, "error": str(e) or type(e).__name__}

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("[%s] completed in %dms: %s", job_id, duration_ms, result)
        return result

    async def _streak_job(self, store: DataStore, now: datetime) -> dict:
        return await StreakEngine(store, self.clock).process_daily_updates(now)

    async def _prepare_job(self, store: DataStore, now: datetime) -> dict:
        return await ReminderGenerator(store, self.clock).prepare_for_next_day(now)

    async def _dispatch_job(self, store: DataStore, now: datetime) -> dict:
        return await ReminderDispatcher(store, self.sender, self.clock).process_due(now)

    async def _warning_job(self, store: DataStore, now: datetime) -> dict:
        return await ReminderGenerator(store, self.clock).generate_streak_warnings(now)

    async def _preservation_job(self, store: DataStore, now: datetime) -> dict:
        return await ReminderGenerator(store, self.clock).generate_streak_preservation(now)
