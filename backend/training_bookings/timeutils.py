"""UTC helpers shared by the reservation engine and the ranker."""
from datetime import date, datetime, time
from typing import Optional

import pytz


def utcnow() -> datetime:
    return datetime.now(pytz.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime.

    SQLite drops tzinfo on the way back; stored values are always UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def local_midnight(day: date, tz_name: str) -> datetime:
    """Midnight of ``day`` in ``tz_name``, as an aware UTC datetime."""
    tz = pytz.timezone(tz_name)
    return tz.localize(datetime.combine(day, time.min)).astimezone(pytz.utc)
