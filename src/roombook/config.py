from __future__ import annotations

import os

TABLE_NAME = os.environ.get("TABLE_NAME", "bookings")
ROOMS_TABLE_NAME = os.environ.get("ROOMS_TABLE_NAME", "rooms")

# Calendar "today" is evaluated in this zone
BOOKING_TIMEZONE = os.environ.get("BOOKING_TIMEZONE", "Asia/Dhaka")

RECURRENCE_MAX_ITERATIONS = int(os.environ.get("RECURRENCE_MAX_ITERATIONS", "730"))
LEDGER_MAX_ATTEMPTS = int(os.environ.get("LEDGER_MAX_ATTEMPTS", "5"))

# Weekdays use date.weekday() numbering: Monday=0 ... Sunday=6
BLACKOUT_OFF_WEEKDAY = int(os.environ.get("BLACKOUT_OFF_WEEKDAY", "4"))
BLACKOUT_WEEKEND_DAY = int(os.environ.get("BLACKOUT_WEEKEND_DAY", "5"))
BLACKOUT_WEEKEND_ORDINALS = tuple(
    int(part) for part in os.environ.get("BLACKOUT_WEEKEND_ORDINALS", "1,3,4").split(",") if part.strip()
)
