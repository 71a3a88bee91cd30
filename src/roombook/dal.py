from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import UTC, date, datetime, time
from typing import TYPE_CHECKING, Any, TypedDict, cast

import boto3
from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

if TYPE_CHECKING:
    # Only for static type checking; not imported at runtime
    from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource
    from mypy_boto3_dynamodb.service_resource import Table as DynamoDBTable
else:
    # Fallbacks to satisfy annotations at runtime
    DynamoDBServiceResource = Any  # type: ignore[assignment]
    DynamoDBTable = Any  # type: ignore[assignment]

from . import config
from .clock import to_minutes
from .errors import BookingRejectedError, ConcurrentWriteError
from .models import AvailableTime, BatchInsertResult, Booking, BookingDraft, Room
from .validator import Interval, conflict_rejection, find_conflicts

logger = Logger()

_dynamodb: DynamoDBServiceResource = boto3.resource("dynamodb")
_table: DynamoDBTable = _dynamodb.Table(config.TABLE_NAME)
_rooms_table: DynamoDBTable = _dynamodb.Table(config.ROOMS_TABLE_NAME)

BOOKING_NOT_FOUND = "Booking not found"
ROOM_NOT_FOUND = "Room not found"

# Ledger items share the bookings table, keyed per room and day
_LEDGER_PREFIX = "ledger#"


class BookingItem(TypedDict, total=False):
    booking_id: str
    room_id: str
    user_id: str
    title: str
    booking_date: str
    start_time: str
    end_time: str
    remarks: str
    repeat_type: str
    repeat_end_date: str
    is_recurring: bool
    parent_booking_id: str
    created_at: str
    updated_at: str


class RoomItem(TypedDict, total=False):
    room_id: str
    name: str
    capacity: int
    color: str
    available_time: dict[str, str]
    status: str


def _time_to_str(t: time) -> str:
    return t.strftime("%H:%M:%S")


def _dt_to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def _is_conditional_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


# --- rooms -------------------------------------------------------------------


def get_room(room_id: str) -> Room:
    resp = cast(dict[str, Any], _rooms_table.get_item(Key={"room_id": room_id}))
    item = resp.get("Item")
    if not isinstance(item, dict):
        raise KeyError(ROOM_NOT_FOUND)
    return _to_room(cast(RoomItem, item))


def put_room(room: Room) -> Room:
    item: RoomItem = {"room_id": room.room_id, "name": room.name, "status": room.status}
    if room.capacity is not None:
        item["capacity"] = room.capacity
    if room.color is not None:
        item["color"] = room.color
    if room.available_time is not None:
        item["available_time"] = {
            "start": _time_to_str(room.available_time.start),
            "end": _time_to_str(room.available_time.end),
        }
    _rooms_table.put_item(Item=item)  # type: ignore
    return get_room(room.room_id)


# --- per room/day ledger -------------------------------------------------------


def _ledger_key(room_id: str, booking_date: date) -> dict[str, str]:
    return {"booking_id": f"{_LEDGER_PREFIX}{room_id}#{booking_date.isoformat()}"}


def _read_ledger(room_id: str, booking_date: date) -> tuple[int, list[Interval]]:
    resp = cast(
        dict[str, Any],
        _table.get_item(Key=_ledger_key(room_id, booking_date), ConsistentRead=True),
    )
    item = cast(dict[str, Any], resp.get("Item") or {})
    slots = [
        Interval(str(slot["booking_id"]), int(slot["start"]), int(slot["end"]))
        for slot in item.get("slots", [])
    ]
    return int(item.get("version", 0)), slots


def _write_ledger(room_id: str, booking_date: date, expected_version: int, slots: list[Interval]) -> bool:
    try:
        _table.update_item(
            Key=_ledger_key(room_id, booking_date),
            UpdateExpression="SET #slots = :slots, #version = :next",
            ConditionExpression="attribute_not_exists(#version) OR #version = :expected",
            ExpressionAttributeNames={"#slots": "slots", "#version": "version"},
            ExpressionAttributeValues={
                ":slots": [slot._asdict() for slot in slots],
                ":next": expected_version + 1,
                ":expected": expected_version,
            },
        )
    except ClientError as exc:
        if _is_conditional_failure(exc):
            return False
        raise
    return True


def _claim_slot(room_id: str, booking_date: date, slot: Interval) -> None:
    """Record ``slot`` in the day's ledger, rejecting it if it overlaps a committed slot.

    The write is conditioned on the version read, so two writers racing for the
    same room and day cannot both commit against the same snapshot.
    """
    for attempt in range(config.LEDGER_MAX_ATTEMPTS):
        version, slots = _read_ledger(room_id, booking_date)
        others = [s for s in slots if s.booking_id != slot.booking_id]
        conflicts = find_conflicts(slot.start, slot.end, others)
        if conflicts:
            raise BookingRejectedError(conflict_rejection(conflicts))
        if _write_ledger(room_id, booking_date, version, [*others, slot]):
            return
        logger.warning(
            "Ledger write contended, retrying",
            extra={"room_id": room_id, "date": booking_date.isoformat(), "attempt": attempt + 1},
        )
    raise ConcurrentWriteError(f"Could not reserve {room_id} on {booking_date.isoformat()}")


def _release_slot(room_id: str, booking_date: date, booking_id: str) -> None:
    for attempt in range(config.LEDGER_MAX_ATTEMPTS):
        version, slots = _read_ledger(room_id, booking_date)
        remaining = [s for s in slots if s.booking_id != booking_id]
        if len(remaining) == len(slots):
            return
        if _write_ledger(room_id, booking_date, version, remaining):
            return
        logger.warning(
            "Ledger release contended, retrying",
            extra={"room_id": room_id, "date": booking_date.isoformat(), "attempt": attempt + 1},
        )
    raise ConcurrentWriteError(f"Could not release {booking_id} on {booking_date.isoformat()}")


def conflicting_booking_ids(
    room_id: str,
    booking_date: date,
    start: int,
    end: int,
    exclude_id: str | None = None,
) -> list[str]:
    _, slots = _read_ledger(room_id, booking_date)
    return find_conflicts(start, end, slots, exclude_id)


# --- bookings ------------------------------------------------------------------


def insert_booking(draft: BookingDraft) -> Booking:
    booking = Booking(
        booking_id=str(uuid.uuid4()),
        created_at=datetime.now(UTC),
        **draft.model_dump(),
    )
    _claim_slot(booking.room_id, booking.booking_date, Interval.of(booking))
    try:
        _table.put_item(Item=_to_item(booking))  # type: ignore
    except (ClientError, BotoCoreError):
        logger.exception(
            "Failed to write booking, releasing its slot",
            extra={"booking_id": booking.booking_id, "date": booking.booking_date.isoformat()},
        )
        _release_slot(booking.room_id, booking.booking_date, booking.booking_id)
        raise

    logger.info(
        "Created booking",
        extra={
            "booking_id": booking.booking_id,
            "room_id": booking.room_id,
            "date": booking.booking_date.isoformat(),
            "parent_booking_id": booking.parent_booking_id,
        },
    )
    # Row is written; a failed read-back must not count it as unsaved
    return booking


def insert_bookings(drafts: Iterable[BookingDraft]) -> BatchInsertResult:
    """Best-effort batch insert; failures are counted into one summary error."""
    result = BatchInsertResult()
    first_error: str | None = None
    for draft in drafts:
        try:
            result.inserted.append(insert_booking(draft))
        except (BookingRejectedError, ConcurrentWriteError, ClientError, BotoCoreError) as exc:
            logger.warning(
                "Failed to insert booking in batch",
                extra={"room_id": draft.room_id, "date": draft.booking_date.isoformat(), "error": str(exc)},
            )
            result.failed_count += 1
            first_error = first_error or str(exc)

    if result.failed_count:
        total = result.failed_count + len(result.inserted)
        result.error = f"{result.failed_count} of {total} bookings could not be saved: {first_error}"
        logger.error("Batch insert partially failed", extra={"error": result.error})
    return result


def get_booking(booking_id: str) -> Booking:
    resp = cast(dict[str, Any], _table.get_item(Key={"booking_id": booking_id}))
    item = resp.get("Item")
    if not isinstance(item, dict) or booking_id.startswith(_LEDGER_PREFIX):
        raise KeyError(BOOKING_NOT_FOUND)
    return _to_model(cast(BookingItem, item))


def list_bookings(room_id: str, booking_date: date) -> list[Booking]:
    resp = cast(
        dict[str, Any],
        _table.query(
            IndexName="room_date_index",
            KeyConditionExpression="room_id = :rid AND booking_date = :d",
            ExpressionAttributeValues={":rid": room_id, ":d": booking_date.isoformat()},
        ),
    )
    raw_items = resp.get("Items", [])
    items: list[BookingItem] = [cast(BookingItem, it) for it in raw_items if isinstance(it, dict)]
    return sorted((_to_model(it) for it in items), key=lambda b: b.start_time)


def list_bookings_for_user(user_id: str) -> list[Booking]:
    resp = cast(
        dict[str, Any],
        _table.query(
            IndexName="user_id_index",
            KeyConditionExpression="user_id = :uid",
            ExpressionAttributeValues={":uid": user_id},
        ),
    )
    raw_items = resp.get("Items", [])
    items: list[BookingItem] = [cast(BookingItem, it) for it in raw_items if isinstance(it, dict)]
    return [_to_model(it) for it in items]


def update_booking(current: Booking, updated: BookingDraft) -> Booking:
    booking_id = current.booking_id
    new_slot = Interval(booking_id, to_minutes(updated.start_time), to_minutes(updated.end_time))

    old_slot = Interval.of(current)
    moved = updated.booking_date != current.booking_date
    reslotted = moved or new_slot != old_slot
    if reslotted:
        # The old day keeps its claim until the row has moved
        _claim_slot(updated.room_id, updated.booking_date, new_slot)

    set_parts: list[str] = []
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    remove_parts: list[str] = []

    def set_attr(name: str, value: Any) -> None:
        names[f"#_{name}"] = name
        values[f":{name}"] = value
        set_parts.append(f"#_{name} = :{name}")

    set_attr("title", updated.title)
    set_attr("booking_date", updated.booking_date.isoformat())
    set_attr("start_time", _time_to_str(updated.start_time))
    set_attr("end_time", _time_to_str(updated.end_time))
    set_attr("updated_at", _dt_to_iso(datetime.now(UTC)))
    if updated.remarks is not None:
        set_attr("remarks", updated.remarks)
    elif current.remarks is not None:
        names["#_remarks"] = "remarks"
        remove_parts.append("#_remarks")

    update_expr = " ".join(
        part
        for part in (
            "SET " + ", ".join(set_parts),
            ("REMOVE " + ", ".join(remove_parts)) if remove_parts else "",
        )
        if part
    )

    try:
        resp = cast(
            dict[str, Any],
            _table.update_item(
                Key={"booking_id": booking_id},
                UpdateExpression=update_expr,
                ReturnValues="ALL_NEW",
                ConditionExpression="attribute_exists(booking_id)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            ),
        )
    except (ClientError, BotoCoreError):
        logger.exception("Failed to update booking, restoring its slot", extra={"booking_id": booking_id})
        if moved:
            _release_slot(updated.room_id, updated.booking_date, booking_id)
        elif reslotted:
            _claim_slot(current.room_id, current.booking_date, old_slot)
        raise

    if moved:
        _release_slot(current.room_id, current.booking_date, booking_id)
    logger.info("Updated booking", extra={"booking_id": booking_id, "moved": moved})
    attrs = cast(dict[str, Any], resp.get("Attributes") or {})
    return _to_model(cast(BookingItem, attrs))


def delete_booking(booking_id: str) -> None:
    # Only this row goes; children of a seed are independent once created
    booking = get_booking(booking_id)
    # Row first: a failed delete must leave the slot protected
    _table.delete_item(Key={"booking_id": booking_id})
    _release_slot(booking.room_id, booking.booking_date, booking_id)
    logger.info("Deleted booking", extra={"booking_id": booking_id})


def _to_item(booking: Booking) -> BookingItem:
    item: BookingItem = {
        "booking_id": booking.booking_id,
        "room_id": booking.room_id,
        "user_id": booking.user_id,
        "title": booking.title,
        "booking_date": booking.booking_date.isoformat(),
        "start_time": _time_to_str(booking.start_time),
        "end_time": _time_to_str(booking.end_time),
        "repeat_type": booking.repeat_type,
        "is_recurring": booking.is_recurring,
    }
    if booking.remarks is not None:
        item["remarks"] = booking.remarks
    if booking.repeat_end_date is not None:
        item["repeat_end_date"] = booking.repeat_end_date.isoformat()
    if booking.parent_booking_id is not None:
        item["parent_booking_id"] = booking.parent_booking_id
    if booking.created_at is not None:
        item["created_at"] = _dt_to_iso(booking.created_at)
    return item


def _to_model(item: BookingItem) -> Booking:
    return Booking(
        booking_id=item["booking_id"],
        room_id=item["room_id"],
        user_id=item["user_id"],
        title=item["title"],
        booking_date=date.fromisoformat(item["booking_date"]),
        start_time=time.fromisoformat(item["start_time"]),
        end_time=time.fromisoformat(item["end_time"]),
        remarks=item.get("remarks"),
        repeat_type=item.get("repeat_type", "no_repeat"),  # type: ignore[arg-type]
        repeat_end_date=date.fromisoformat(item["repeat_end_date"]) if "repeat_end_date" in item else None,
        is_recurring=bool(item.get("is_recurring", False)),
        parent_booking_id=item.get("parent_booking_id"),
        created_at=datetime.fromisoformat(item["created_at"]) if "created_at" in item else None,
        updated_at=datetime.fromisoformat(item["updated_at"]) if "updated_at" in item else None,
    )


def _to_room(item: RoomItem) -> Room:
    window = item.get("available_time")
    capacity = item.get("capacity")
    return Room(
        room_id=item["room_id"],
        name=item["name"],
        # DynamoDB hands numbers back as Decimal
        capacity=int(capacity) if capacity is not None else None,
        color=item.get("color"),
        available_time=(
            AvailableTime(start=time.fromisoformat(window["start"]), end=time.fromisoformat(window["end"]))
            if window
            else None
        ),
        status=item.get("status", "enabled"),  # type: ignore[arg-type]
    )
