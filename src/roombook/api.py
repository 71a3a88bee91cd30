from __future__ import annotations

from datetime import date

from aws_lambda_powertools import Logger, Tracer
from aws_lambda_powertools.metrics import Metrics
from fastapi import FastAPI, HTTPException, Query
from starlette.responses import Response

from roombook import dal, service
from roombook.errors import BookingRejectedError, ConcurrentWriteError
from roombook.models import (
    Booking,
    BookingCreate,
    BookingSubmission,
    BookingUpdate,
    RejectionReason,
    SlotStatus,
)

logger = Logger()
tracer = Tracer()
metrics = Metrics(namespace="RoomBooking")

app = FastAPI(title="Room Booking API", version="0.1.0")


def _rejected(exc: BookingRejectedError) -> HTTPException:
    status = 409 if exc.rejection.reason == RejectionReason.CONFLICT else 422
    return HTTPException(status_code=status, detail=exc.rejection.model_dump(mode="json"))


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@tracer.capture_method
@app.post("/bookings", response_model=BookingSubmission, status_code=201)
def create_booking(payload: BookingCreate) -> BookingSubmission:
    try:
        return service.submit_booking(payload)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Room not found") from exc
    except BookingRejectedError as exc:
        raise _rejected(exc) from exc
    except ConcurrentWriteError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@tracer.capture_method
@app.get("/bookings/{booking_id}", response_model=Booking)
def get_booking(booking_id: str) -> Booking:
    try:
        return dal.get_booking(booking_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Booking not found") from exc


@tracer.capture_method
@app.get("/users/{user_id}/bookings", response_model=list[Booking])
def list_user_bookings(user_id: str) -> list[Booking]:
    return dal.list_bookings_for_user(user_id)


@tracer.capture_method
@app.get("/rooms/{room_id}/bookings", response_model=list[Booking])
def list_room_bookings(room_id: str, booking_date: date) -> list[Booking]:
    return dal.list_bookings(room_id, booking_date)


@tracer.capture_method
@app.get("/rooms/{room_id}/availability", response_model=list[SlotStatus])
def room_availability(
    room_id: str,
    booking_date: date,
    slot_minutes: int = Query(default=30, ge=5, le=240),
) -> list[SlotStatus]:
    try:
        return service.room_availability(room_id, booking_date, slot_minutes)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Room not found") from exc


@tracer.capture_method
@app.put("/bookings/{booking_id}", response_model=Booking)
def update_booking(booking_id: str, payload: BookingUpdate) -> Booking:
    try:
        return service.edit_booking(booking_id, payload)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Booking not found") from exc
    except BookingRejectedError as exc:
        raise _rejected(exc) from exc
    except ConcurrentWriteError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@tracer.capture_method
@app.delete("/bookings/{booking_id}")
def delete_booking(booking_id: str) -> Response:
    try:
        service.remove_booking(booking_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Booking not found") from exc
    return Response(status_code=204)
