from __future__ import annotations

import calendar
from datetime import date

from pydantic import BaseModel, Field

from roombook import config

_ORDINAL_NAMES = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th", 5: "5th"}


def weekday_ordinal(day: date) -> int:
    """Which occurrence of its weekday ``day`` is within its month (1-based)."""
    return (day.day - 1) // 7 + 1


def weekday_count(year: int, month: int, weekday: int) -> int:
    first_weekday, days_in_month = calendar.monthrange(year, month)
    first_hit = 1 + (weekday - first_weekday) % 7
    return (days_in_month - first_hit) // 7 + 1


class BlackoutPolicy(BaseModel):
    """Organisation-wide days on which daily/custom series do not book.

    Defaults encode a Friday weekend with the 1st, 3rd and 4th Saturday off;
    the 2nd (and any 5th) Saturday is a working day.
    """

    off_weekday: int = Field(default=4, ge=0, le=6)
    weekend_day: int = Field(default=5, ge=0, le=6)
    weekend_ordinals: tuple[int, ...] = (1, 3, 4)

    @classmethod
    def from_config(cls) -> BlackoutPolicy:
        return cls(
            off_weekday=config.BLACKOUT_OFF_WEEKDAY,
            weekend_day=config.BLACKOUT_WEEKEND_DAY,
            weekend_ordinals=config.BLACKOUT_WEEKEND_ORDINALS,
        )

    def reason_for(self, day: date) -> str | None:
        weekday = day.weekday()
        if weekday == self.off_weekday:
            return f"{calendar.day_name[weekday]} is the weekly off-day."
        if weekday != self.weekend_day:
            return None

        ordinal = weekday_ordinal(day)
        if ordinal not in self.weekend_ordinals:
            return None
        # An nth occurrence only counts when the month actually has n of them
        if weekday_count(day.year, day.month, weekday) < ordinal:
            return None
        return f"{_ORDINAL_NAMES[ordinal]} {calendar.day_name[weekday]} of the month."
