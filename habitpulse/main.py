import argparse
import asyncio
import logging

from habitpulse.config import settings
from habitpulse.bot.loader import create_bot
from habitpulse.core.database import async_session_factory, engine, init_models
from habitpulse.core.scheduler import HabitScheduler
from habitpulse.services.notification_sender import TelegramNotificationSender

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="habitpulse")
    parser.add_argument("--run-once", metavar="JOB_ID", help="run a single job and exit")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    bot = create_bot()
    scheduler = HabitScheduler(async_session_factory, TelegramNotificationSender(bot))

    try:
        await init_models()

        if args.run_once:
            result = await scheduler.run_once(args.run_once)
            logger.info("Job %s finished: %s", args.run_once, result)
            return 0 if result.get("success") else 1

        logger.info("Starting scheduler...")
        scheduler.start()
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()
        await bot.session.close()
        await engine.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
