from __future__ import annotations

import copy
import os
from typing import Any

os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "true")
os.environ.setdefault("POWERTOOLS_DEV", "true")

import pytest  # noqa: E402
from botocore.exceptions import ClientError  # noqa: E402

from roombook import dal  # noqa: E402

_INDEXES = {
    "room_date_index": {":rid": "room_id", ":d": "booking_date"},
    "user_id_index": {":uid": "user_id"},
}


def _conditional_failure(operation: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "ConditionalCheckFailedException", "Message": "The conditional request failed"}},
        operation,
    )


class FakeTable:
    def __init__(self, key: str) -> None:
        self.key = key
        self.items: dict[str, dict[str, Any]] = {}

    def put_item(self, Item):  # noqa NOSONAR
        self.items[Item[self.key]] = copy.deepcopy(Item)

    def get_item(self, Key, ConsistentRead=False):  # noqa NOSONAR
        item = self.items.get(Key[self.key])
        return {"Item": copy.deepcopy(item)} if item else {}

    def delete_item(self, Key):  # noqa NOSONAR
        self.items.pop(Key[self.key], None)

    def update_item(self, **kwargs):
        key = kwargs["Key"][self.key]
        eav = kwargs.get("ExpressionAttributeValues") or {}
        ean = kwargs.get("ExpressionAttributeNames") or {}
        condition = kwargs.get("ConditionExpression", "")
        existing = self.items.get(key)

        if condition.startswith("attribute_exists") and existing is None:
            raise _conditional_failure("UpdateItem")
        if ":expected" in condition:
            version_attr = ean["#version"]
            if existing is not None and version_attr in existing and existing[version_attr] != eav[":expected"]:
                raise _conditional_failure("UpdateItem")

        attrs = copy.deepcopy(existing) if existing else {self.key: key}
        update_expr = kwargs.get("UpdateExpression", "")
        if "SET" in update_expr:
            set_part = update_expr.split("SET", 1)[1].split("REMOVE")[0]
            for assign in [s.strip() for s in set_part.split(",") if s.strip()]:
                name, val = [s.strip() for s in assign.split("=")]
                attrs[ean.get(name, name)] = copy.deepcopy(eav[val])
        if "REMOVE" in update_expr:
            remove_part = update_expr.split("REMOVE", 1)[1]
            for name in [s.strip() for s in remove_part.split(",") if s.strip()]:
                attrs.pop(ean.get(name, name), None)
        self.items[key] = attrs
        return {"Attributes": copy.deepcopy(attrs)}

    def query(self, **kwargs):
        wanted = {attr: kwargs["ExpressionAttributeValues"][ph] for ph, attr in _INDEXES[kwargs["IndexName"]].items()}
        items = [
            copy.deepcopy(it)
            for it in self.items.values()
            if all(it.get(attr) == value for attr, value in wanted.items())
        ]
        return {"Items": items}


@pytest.fixture()
def bookings_table(monkeypatch: pytest.MonkeyPatch) -> FakeTable:
    fake = FakeTable("booking_id")
    monkeypatch.setattr(dal, "_table", fake)
    return fake


@pytest.fixture()
def rooms_table(monkeypatch: pytest.MonkeyPatch) -> FakeTable:
    fake = FakeTable("room_id")
    monkeypatch.setattr(dal, "_rooms_table", fake)
    return fake
