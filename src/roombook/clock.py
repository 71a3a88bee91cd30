from __future__ import annotations

import re
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from roombook import config

_CLOCK_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


def today() -> date:
    return datetime.now(ZoneInfo(config.BOOKING_TIMEZONE)).date()


def to_minutes(value: time | str) -> int:
    """Minute of day for a ``time`` or an ``HH:MM`` / ``HH:MM:SS`` string.

    Seconds are dropped; bookings are resolved to the minute.
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    match = _CLOCK_RE.match(value.strip())
    if match is None:
        raise ValueError(f"Invalid time of day: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
