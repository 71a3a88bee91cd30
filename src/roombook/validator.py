from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import NamedTuple

from roombook.clock import format_minutes, to_minutes
from roombook.models import Booking, BookingDraft, Rejection, RejectionReason, Room


class Interval(NamedTuple):
    booking_id: str
    start: int
    end: int

    @classmethod
    def of(cls, booking: Booking) -> Interval:
        return cls(booking.booking_id, to_minutes(booking.start_time), to_minutes(booking.end_time))


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    # Half-open intervals: touching boundaries do not overlap
    return start_a < end_b and end_a > start_b


def find_conflicts(
    start: int,
    end: int,
    existing: Iterable[Interval],
    exclude_id: str | None = None,
) -> list[str]:
    return [
        interval.booking_id
        for interval in existing
        if interval.booking_id != exclude_id and overlaps(start, end, interval.start, interval.end)
    ]


def conflict_rejection(conflicting_ids: list[str]) -> Rejection:
    return Rejection(
        reason=RejectionReason.CONFLICT,
        message="The selected time slot overlaps with an existing booking in this room.",
        conflicting_ids=conflicting_ids,
    )


def validate(
    candidate: BookingDraft,
    existing: Iterable[Booking],
    room: Room,
    today: date,
    exclude_id: str | None = None,
) -> Rejection | None:
    """Return the first failed check for ``candidate``, or None when it may be persisted.

    Checks run in order: interval, past date, room hours, overlap.
    """
    start = to_minutes(candidate.start_time)
    end = to_minutes(candidate.end_time)

    if start >= end:
        return Rejection(
            reason=RejectionReason.INVALID_INTERVAL,
            message="End time must be after start time.",
        )

    if candidate.booking_date < today:
        return Rejection(
            reason=RejectionReason.PAST_DATE,
            message="Bookings cannot be made for a past date.",
        )

    window = room.available_time
    if window is not None:
        window_start = to_minutes(window.start)
        window_end = to_minutes(window.end)
        if start < window_start or end > window_end:
            return Rejection(
                reason=RejectionReason.OUTSIDE_ROOM_HOURS,
                message=(
                    "Booking must be within room's available hours: "
                    f"{format_minutes(window_start)} - {format_minutes(window_end)}."
                ),
            )

    conflicts = find_conflicts(start, end, (Interval.of(b) for b in existing), exclude_id)
    if conflicts:
        return conflict_rejection(conflicts)

    return None
