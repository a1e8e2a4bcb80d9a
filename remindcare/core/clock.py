"""Civil-time helpers. Every scheduling decision is taken in the configured zone."""

from datetime import date, datetime, time
from typing import Optional

import pytz

from remindcare.config import get_settings

settings = get_settings()
tz = pytz.timezone(settings.TIMEZONE)

DAY_KEY_FORMAT = "%Y-%m-%d"


def now_local() -> datetime:
    """Current instant in the configured timezone."""
    return datetime.now(tz)


def localize(value: Optional[datetime]) -> Optional[datetime]:
    """Bring a stored timestamp back into the configured zone.

    SQLite drops tzinfo on the way out, so naive values are read as local time.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return tz.localize(value)
    return value.astimezone(tz)


def at_local(day: date, clock: time) -> datetime:
    """Build an aware datetime for a civil day + wall-clock time."""
    return tz.localize(datetime.combine(day, clock))


def to_day_key(value) -> str:
    return value.strftime(DAY_KEY_FORMAT)


def parse_day_key(key: Optional[str]) -> Optional[date]:
    if not key:
        return None
    try:
        return datetime.strptime(key, DAY_KEY_FORMAT).date()
    except ValueError:
        return None


def parse_clock(value: Optional[str]) -> Optional[time]:
    """Parse a canonical "HH:MM" string."""
    if not value:
        return None
    try:
        hour, minute = (int(part) for part in value.split(":"))
        return time(hour, minute)
    except ValueError:
        return None


def scheduled_today(clock_value: str, now: datetime) -> Optional[datetime]:
    """Today's occurrence of a "HH:MM" clock time, in ``now``'s zone."""
    clock = parse_clock(clock_value)
    if clock is None:
        return None
    return now.replace(hour=clock.hour, minute=clock.minute, second=0, microsecond=0)
