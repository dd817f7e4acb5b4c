import logging
from datetime import datetime

from habitpulse.models.user import User
from habitpulse.utils.datetime_utils import to_local, parse_hhmm, minutes_since_midnight

logger = logging.getLogger(__name__)


def is_quiet(prefs: dict | None, tz_name: str | None, instant: datetime) -> bool:
    """Check whether ``instant`` falls inside the quiet window.

    ``prefs`` is ``{"enabled": bool, "start": "HH:MM", "end": "HH:MM"}``.
    Windows where start > end wrap past midnight (22:00-08:00). Both ends
    are inclusive.
    """
    if not prefs or not prefs.get("enabled"):
        return False

    start = parse_hhmm(prefs.get("start") or "22:00")
    end = parse_hhmm(prefs.get("end") or "08:00")
    current = minutes_since_midnight(to_local(instant, tz_name))

    if start > end:
        return current >= start or current <= end
    return start <= current <= end


class QuietHoursEvaluator:
    def is_quiet(self, user: User, instant: datetime) -> bool:
        prefs = user.get_settings().get("quiet_hours")
        try:
            return is_quiet(prefs, user.timezone, instant)
        except ValueError as e:
            logger.warning("Bad quiet hours for user %s: %s", user.id, e)
            return False
