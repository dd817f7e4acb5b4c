import logging
from datetime import datetime, date, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from habitpulse.config import settings

logger = logging.getLogger(__name__)


class Clock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def get_zone(name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(name or settings.TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to %s", name, settings.TIMEZONE)
        return ZoneInfo(settings.TIMEZONE)


def ensure_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_local(instant: datetime, tz_name: str | None) -> datetime:
    return ensure_utc(instant).astimezone(get_zone(tz_name))


def local_today(instant: datetime, tz_name: str | None) -> date:
    return to_local(instant, tz_name).date()


def local_yesterday(instant: datetime, tz_name: str | None) -> date:
    return local_today(instant, tz_name) - timedelta(days=1)


def local_day_bounds(day: date, tz_name: str | None) -> tuple[datetime, datetime]:
    """Return the UTC [start, end) interval covering ``day`` in the given zone."""
    zone = get_zone(tz_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def at_local_time(day: date, moment: time, tz_name: str | None) -> datetime:
    zone = get_zone(tz_name)
    local = datetime.combine(day, moment.replace(second=0, microsecond=0, tzinfo=None), tzinfo=zone)
    return local.astimezone(timezone.utc)


def parse_hhmm(value: str) -> int:
    hours, minutes = value.strip().split(":")
    hours, minutes = int(hours), int(minutes)
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hours * 60 + minutes


def minutes_since_midnight(moment: datetime | time) -> int:
    return moment.hour * 60 + moment.minute
