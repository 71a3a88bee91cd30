from __future__ import annotations

from datetime import date

from aws_lambda_powertools import Logger
from aws_lambda_powertools.metrics import Metrics, MetricUnit

from roombook import clock, dal
from roombook.blackout import BlackoutPolicy
from roombook.errors import BookingRejectedError
from roombook.models import (
    Booking,
    BookingCreate,
    BookingSubmission,
    BookingUpdate,
    NoRepeat,
    RecurrenceSummary,
    Rejection,
    RejectionReason,
    Room,
    SlotStatus,
)
from roombook.recurrence import expand
from roombook.slots import day_slots
from roombook.validator import validate

logger = Logger()
metrics = Metrics(namespace="RoomBooking")


def _reject(rejection: Rejection, **context: object) -> BookingRejectedError:
    logger.info("Booking rejected", extra={"reason": rejection.reason.value, **context})
    metrics.add_metric(name="BookingRejected", value=1, unit=MetricUnit.Count)
    return BookingRejectedError(rejection)


def _ensure_enabled(room: Room) -> None:
    if room.status == "disabled":
        raise _reject(
            Rejection(reason=RejectionReason.ROOM_DISABLED, message=f"Room {room.name} is not available for booking."),
            room_id=room.room_id,
        )


def submit_booking(
    request: BookingCreate,
    today: date | None = None,
    blackout: BlackoutPolicy | None = None,
) -> BookingSubmission:
    room = dal.get_room(request.room_id)
    _ensure_enabled(room)

    draft = request.to_draft()
    existing = dal.list_bookings(draft.room_id, draft.booking_date)
    rejection = validate(draft, existing, room, today or clock.today())
    if rejection is not None:
        raise _reject(rejection, room_id=room.room_id, date=draft.booking_date.isoformat())

    seed = dal.insert_booking(draft)
    metrics.add_metric(name="BookingCreated", value=1, unit=MetricUnit.Count)
    if isinstance(request.recurrence, NoRepeat):
        return BookingSubmission(booking=seed)

    expansion = expand(seed, request.recurrence, dal.conflicting_booking_ids, blackout=blackout)
    batch = dal.insert_bookings(expansion.occurrences)
    metrics.add_metric(name="RecurringBookingsInserted", value=len(batch.inserted), unit=MetricUnit.Count)
    metrics.add_metric(name="RecurringDatesSkipped", value=len(expansion.skipped), unit=MetricUnit.Count)

    logger.info(
        "Recurring series created",
        extra={
            "booking_id": seed.booking_id,
            "inserted": len(batch.inserted),
            "skipped": len(expansion.skipped),
            "failed": batch.failed_count,
        },
    )
    return BookingSubmission(
        booking=seed,
        recurrence=RecurrenceSummary(
            inserted_count=len(batch.inserted),
            skipped=expansion.skipped,
            error=batch.error,
        ),
    )


def edit_booking(booking_id: str, payload: BookingUpdate, today: date | None = None) -> Booking:
    current = dal.get_booking(booking_id)
    room = dal.get_room(current.room_id)

    # remarks may be cleared with an explicit null; the other fields may not
    changes = {
        name: value
        for name, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or name == "remarks"
    }
    updated = current.model_copy(update=changes)
    existing = dal.list_bookings(updated.room_id, updated.booking_date)
    rejection = validate(updated, existing, room, today or clock.today(), exclude_id=booking_id)
    if rejection is not None:
        raise _reject(rejection, booking_id=booking_id)

    return dal.update_booking(current, updated)


def remove_booking(booking_id: str) -> None:
    dal.delete_booking(booking_id)


def room_availability(room_id: str, booking_date: date, slot_minutes: int = 30) -> list[SlotStatus]:
    room = dal.get_room(room_id)
    return day_slots(room, dal.list_bookings(room_id, booking_date), slot_minutes)
