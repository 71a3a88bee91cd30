from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator

RepeatType = Literal["no_repeat", "daily", "weekly", "monthly", "custom"]


class AvailableTime(BaseModel):
    start: time
    end: time

    @model_validator(mode="after")
    def _check_window(self) -> AvailableTime:
        if self.start >= self.end:
            raise ValueError("available_time.start must be before available_time.end")
        return self


class Room(BaseModel):
    room_id: str = Field(..., min_length=1)
    name: str
    capacity: int | None = Field(default=None, ge=1)
    color: str | None = None
    # None means the room is bookable all day (00:00-23:59)
    available_time: AvailableTime | None = None
    status: Literal["enabled", "disabled"] = "enabled"


class NoRepeat(BaseModel):
    kind: Literal["no_repeat"] = "no_repeat"


class Daily(BaseModel):
    kind: Literal["daily"] = "daily"
    until: date | None = None


class Weekly(BaseModel):
    kind: Literal["weekly"] = "weekly"
    until: date | None = None


class Monthly(BaseModel):
    kind: Literal["monthly"] = "monthly"
    until: date | None = None


class Custom(BaseModel):
    kind: Literal["custom"] = "custom"
    until: date


RepeatingRule = Daily | Weekly | Monthly | Custom
RecurrenceRule = Annotated[NoRepeat | Daily | Weekly | Monthly | Custom, Field(discriminator="kind")]


class BookingDraft(BaseModel):
    room_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    booking_date: date
    start_time: time
    end_time: time
    remarks: str | None = None
    repeat_type: RepeatType = "no_repeat"
    repeat_end_date: date | None = None
    is_recurring: bool = False
    # Set on children generated from a recurring seed
    parent_booking_id: str | None = None


class Booking(BookingDraft):
    booking_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BookingCreate(BaseModel):
    room_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    booking_date: date
    start_time: time
    end_time: time
    remarks: str | None = None
    recurrence: RecurrenceRule = Field(default_factory=NoRepeat)

    @model_validator(mode="after")
    def _check_until(self) -> BookingCreate:
        until = getattr(self.recurrence, "until", None)
        if until is not None and until < self.booking_date:
            raise ValueError("recurrence.until must not be before booking_date")
        return self

    def to_draft(self) -> BookingDraft:
        return BookingDraft(
            room_id=self.room_id,
            user_id=self.user_id,
            title=self.title,
            booking_date=self.booking_date,
            start_time=self.start_time,
            end_time=self.end_time,
            remarks=self.remarks,
            repeat_type=self.recurrence.kind,
            repeat_end_date=getattr(self.recurrence, "until", None),
            is_recurring=not isinstance(self.recurrence, NoRepeat),
        )


class BookingUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    booking_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    remarks: str | None = None


class RejectionReason(str, Enum):
    INVALID_INTERVAL = "invalid_interval"
    PAST_DATE = "past_date"
    OUTSIDE_ROOM_HOURS = "outside_room_hours"
    CONFLICT = "conflict"
    ROOM_DISABLED = "room_disabled"


class Rejection(BaseModel):
    reason: RejectionReason
    message: str
    conflicting_ids: list[str] = Field(default_factory=list)


class SkipReason(str, Enum):
    BLACKED_OUT = "blacked_out"
    CONFLICT = "conflict"
    # The conflict check itself failed (e.g. storage unavailable)
    CHECK_FAILED = "check_failed"


class SkipRecord(BaseModel):
    booking_date: date
    reason: SkipReason
    detail: str
    conflicting_ids: list[str] = Field(default_factory=list)


class ExpansionResult(BaseModel):
    occurrences: list[BookingDraft] = Field(default_factory=list)
    skipped: list[SkipRecord] = Field(default_factory=list)


class BatchInsertResult(BaseModel):
    inserted: list[Booking] = Field(default_factory=list)
    failed_count: int = 0
    error: str | None = None


class RecurrenceSummary(BaseModel):
    inserted_count: int
    skipped: list[SkipRecord] = Field(default_factory=list)
    error: str | None = None


class BookingSubmission(BaseModel):
    booking: Booking
    recurrence: RecurrenceSummary | None = None


class SlotStatus(BaseModel):
    start_time: time
    end_time: time
    booking_id: str | None = None
