from datetime import datetime, date, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from habit_coach.config import settings


def app_timezone():
    try:
        return ZoneInfo(settings.TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def local_today() -> date:
    return datetime.now(app_timezone()).date()


def now_millis() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)
