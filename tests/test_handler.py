from __future__ import annotations

import json
from datetime import date, time
from http import HTTPStatus
from typing import Any
from unittest.mock import patch

from roombook.api_handler import lambda_handler
from roombook.models import Booking


def _http_v2_event(path: str, method: str = "GET", query: str = "") -> dict[str, Any]:
    return {
        "version": "2.0",
        "rawPath": path,
        "routeKey": f"{method} {path}",
        "rawQueryString": query,
        "headers": {"host": "example.com"},
        "requestContext": {"http": {"method": method, "path": path, "protocol": "HTTP/1.1"}},
        "isBase64Encoded": False,
    }


def test_lambda_handler_health_ok() -> None:
    event = _http_v2_event("/health", "GET")
    resp = lambda_handler(event, context={})  # type: ignore[arg-type]
    assert isinstance(resp, dict)
    assert resp.get("statusCode") == HTTPStatus.OK
    assert "ok" in resp.get("body", "")


def test_lambda_handler_routes_room_bookings_query() -> None:
    booking = Booking(
        booking_id="b-1",
        room_id="R1",
        user_id="u-1",
        title="Sync",
        booking_date=date(2030, 3, 13),
        start_time=time(9, 0),
        end_time=time(10, 0),
    )
    with patch("roombook.api.dal.list_bookings") as mock_list:
        mock_list.return_value = [booking]
        event = _http_v2_event("/rooms/R1/bookings", "GET", query="booking_date=2030-03-13")
        resp = lambda_handler(event, context={})  # type: ignore[arg-type]

    assert resp.get("statusCode") == HTTPStatus.OK
    assert [b["booking_id"] for b in json.loads(resp["body"])] == ["b-1"]
    mock_list.assert_called_once_with("R1", date(2030, 3, 13))
