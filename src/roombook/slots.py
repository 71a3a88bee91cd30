from __future__ import annotations

from collections.abc import Iterable
from datetime import time

from roombook.clock import to_minutes
from roombook.models import Booking, Room, SlotStatus
from roombook.validator import Interval, overlaps

_DAY_START = 0
_DAY_END = 23 * 60 + 59


def _to_time(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def day_slots(room: Room, bookings: Iterable[Booking], slot_minutes: int = 30) -> list[SlotStatus]:
    """Split the room's operating window into fixed slots and mark who holds each one.

    The last slot is cut short when the window does not divide evenly.
    """
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")

    if room.available_time is None:
        window_start, window_end = _DAY_START, _DAY_END
    else:
        window_start = to_minutes(room.available_time.start)
        window_end = to_minutes(room.available_time.end)

    intervals = [Interval.of(b) for b in bookings]
    slots: list[SlotStatus] = []
    for start in range(window_start, window_end, slot_minutes):
        end = min(start + slot_minutes, window_end)
        holder = next((i.booking_id for i in intervals if overlaps(start, end, i.start, i.end)), None)
        slots.append(SlotStatus(start_time=_to_time(start), end_time=_to_time(end), booking_id=holder))
    return slots
