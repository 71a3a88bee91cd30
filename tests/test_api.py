from __future__ import annotations

from datetime import date, time
from http import HTTPStatus
from typing import Any
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from roombook.api import app
from roombook.errors import BookingRejectedError, ConcurrentWriteError
from roombook.models import (
    Booking,
    BookingSubmission,
    RecurrenceSummary,
    Rejection,
    RejectionReason,
    SkipReason,
    SkipRecord,
    SlotStatus,
)


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def booking_factory(**overrides: Any) -> Booking:
    base: dict[str, Any] = dict(
        booking_id="b-123",
        room_id="R1",
        user_id="u-1",
        title="Sync",
        booking_date=date(2030, 3, 13),
        start_time=time(9, 0),
        end_time=time(10, 0),
    )
    base.update(overrides)
    return Booking(**base)


def create_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "room_id": "R1",
        "user_id": "u-1",
        "title": "Sync",
        "booking_date": "2030-03-13",
        "start_time": "09:00",
        "end_time": "10:00",
    }
    payload.update(overrides)
    return payload


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == HTTPStatus.OK
    assert resp.json() == {"status": "ok"}


def test_create_booking_route(client: TestClient) -> None:
    with patch("roombook.api.service.submit_booking") as mock_submit:
        mock_submit.return_value = BookingSubmission(booking=booking_factory())
        resp = client.post("/bookings", json=create_payload())
        assert resp.status_code == HTTPStatus.CREATED
        assert resp.json()["booking"]["booking_id"] == "b-123"
        assert resp.json()["recurrence"] is None
        request = mock_submit.call_args.args[0]
        assert request.start_time == time(9, 0)
        assert request.recurrence.kind == "no_repeat"


def test_create_recurring_booking_route_returns_summary(client: TestClient) -> None:
    with patch("roombook.api.service.submit_booking") as mock_submit:
        mock_submit.return_value = BookingSubmission(
            booking=booking_factory(repeat_type="weekly", is_recurring=True),
            recurrence=RecurrenceSummary(
                inserted_count=2,
                skipped=[
                    SkipRecord(
                        booking_date=date(2030, 3, 27),
                        reason=SkipReason.CONFLICT,
                        detail="Time slot conflicts with existing booking(s): b-9",
                        conflicting_ids=["b-9"],
                    )
                ],
            ),
        )
        resp = client.post(
            "/bookings",
            json=create_payload(recurrence={"kind": "weekly", "until": "2030-04-03"}),
        )
        assert resp.status_code == HTTPStatus.CREATED
        summary = resp.json()["recurrence"]
        assert summary["inserted_count"] == 2
        assert summary["skipped"][0]["reason"] == "conflict"
        assert mock_submit.call_args.args[0].recurrence.until == date(2030, 4, 3)


def test_create_custom_without_until_is_unprocessable(client: TestClient) -> None:
    resp = client.post("/bookings", json=create_payload(recurrence={"kind": "custom"}))
    assert resp.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_create_conflict_maps_to_409(client: TestClient) -> None:
    with patch("roombook.api.service.submit_booking") as mock_submit:
        mock_submit.side_effect = BookingRejectedError(
            Rejection(reason=RejectionReason.CONFLICT, message="overlap", conflicting_ids=["b-1"])
        )
        resp = client.post("/bookings", json=create_payload())
        assert resp.status_code == HTTPStatus.CONFLICT
        assert resp.json()["detail"]["conflicting_ids"] == ["b-1"]


def test_create_past_date_maps_to_422(client: TestClient) -> None:
    with patch("roombook.api.service.submit_booking") as mock_submit:
        mock_submit.side_effect = BookingRejectedError(
            Rejection(reason=RejectionReason.PAST_DATE, message="Bookings cannot be made for a past date.")
        )
        resp = client.post("/bookings", json=create_payload())
        assert resp.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
        assert resp.json()["detail"]["reason"] == "past_date"


def test_create_contended_write_maps_to_409(client: TestClient) -> None:
    with patch("roombook.api.service.submit_booking") as mock_submit:
        mock_submit.side_effect = ConcurrentWriteError("Could not reserve R1 on 2030-03-13")
        resp = client.post("/bookings", json=create_payload())
        assert resp.status_code == HTTPStatus.CONFLICT


def test_create_unknown_room_maps_to_404(client: TestClient) -> None:
    with patch("roombook.api.service.submit_booking") as mock_submit:
        mock_submit.side_effect = KeyError("Room not found")
        resp = client.post("/bookings", json=create_payload())
        assert resp.status_code == HTTPStatus.NOT_FOUND
        assert resp.json()["detail"] == "Room not found"


def test_get_booking_route_found(client: TestClient) -> None:
    with patch("roombook.api.dal.get_booking") as mock_get:
        mock_get.return_value = booking_factory(booking_id="b-42")
        resp = client.get("/bookings/b-42")
        assert resp.status_code == HTTPStatus.OK
        assert resp.json()["booking_id"] == "b-42"


def test_get_booking_route_not_found(client: TestClient) -> None:
    with patch("roombook.api.dal.get_booking") as mock_get:
        mock_get.side_effect = KeyError("Booking not found")
        resp = client.get("/bookings/missing")
        assert resp.status_code == HTTPStatus.NOT_FOUND
        assert resp.json()["detail"] == "Booking not found"


def test_list_user_bookings_route(client: TestClient) -> None:
    with patch("roombook.api.dal.list_bookings_for_user") as mock_list:
        mock_list.return_value = [booking_factory(booking_id="b1"), booking_factory(booking_id="b2")]
        resp = client.get("/users/u-1/bookings")
        assert resp.status_code == HTTPStatus.OK
        assert [b["booking_id"] for b in resp.json()] == ["b1", "b2"]


def test_list_room_bookings_route(client: TestClient) -> None:
    with patch("roombook.api.dal.list_bookings") as mock_list:
        mock_list.return_value = [booking_factory()]
        resp = client.get("/rooms/R1/bookings", params={"booking_date": "2030-03-13"})
        assert resp.status_code == HTTPStatus.OK
        mock_list.assert_called_once_with("R1", date(2030, 3, 13))


def test_room_availability_route(client: TestClient) -> None:
    with patch("roombook.api.service.room_availability") as mock_slots:
        mock_slots.return_value = [
            SlotStatus(start_time=time(9, 0), end_time=time(9, 30), booking_id="b-1"),
            SlotStatus(start_time=time(9, 30), end_time=time(10, 0)),
        ]
        resp = client.get("/rooms/R1/availability", params={"booking_date": "2030-03-13", "slot_minutes": 30})
        assert resp.status_code == HTTPStatus.OK
        assert [s["booking_id"] for s in resp.json()] == ["b-1", None]
        mock_slots.assert_called_once_with("R1", date(2030, 3, 13), 30)


def test_update_booking_route_found(client: TestClient) -> None:
    with patch("roombook.api.service.edit_booking") as mock_edit:
        mock_edit.return_value = booking_factory(title="Renamed")
        resp = client.put("/bookings/b-123", json={"title": "Renamed"})
        assert resp.status_code == HTTPStatus.OK
        assert resp.json()["title"] == "Renamed"


def test_update_booking_route_not_found(client: TestClient) -> None:
    with patch("roombook.api.service.edit_booking") as mock_edit:
        mock_edit.side_effect = KeyError("Booking not found")
        resp = client.put("/bookings/missing", json={"title": "x"})
        assert resp.status_code == HTTPStatus.NOT_FOUND


def test_update_booking_route_conflict(client: TestClient) -> None:
    with patch("roombook.api.service.edit_booking") as mock_edit:
        mock_edit.side_effect = BookingRejectedError(
            Rejection(reason=RejectionReason.CONFLICT, message="overlap", conflicting_ids=["b-7"])
        )
        resp = client.put("/bookings/b-123", json={"end_time": "11:30"})
        assert resp.status_code == HTTPStatus.CONFLICT


def test_delete_booking_route(client: TestClient) -> None:
    with patch("roombook.api.service.remove_booking") as mock_delete:
        resp = client.delete("/bookings/b-123")
        assert resp.status_code == HTTPStatus.NO_CONTENT
        mock_delete.assert_called_once_with("b-123")


def test_delete_booking_route_not_found(client: TestClient) -> None:
    with patch("roombook.api.service.remove_booking") as mock_delete:
        mock_delete.side_effect = KeyError("Booking not found")
        resp = client.delete("/bookings/missing")
        assert resp.status_code == HTTPStatus.NOT_FOUND
