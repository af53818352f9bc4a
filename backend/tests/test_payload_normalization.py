"""Snapshot payload decoding across historical key conventions."""

import pytest

from prodday.services import snapshot_service
from prodday.services.errors import CorruptSnapshot
from prodday.services.reopen_service import reconcile_entries


def test_camel_and_snake_case_normalize_to_the_same_entry():
    camel = snapshot_service.normalize_entry({
        "productId": "p-1",
        "productCode": "A1",
        "productDescription": "Widget",
        "quantity": 2,
        "checked": True,
        "checkedBy": 7,
        "insertedAt": "2024-01-10T08:00:00Z",
    })
    snake = snapshot_service.normalize_entry({
        "product_id": "p-1",
        "product_code": "A1",
        "product_description": "Widget",
        "quantity": 2,
        "checked": True,
        "checked_by": 7,
        "inserted_at": "2024-01-10T08:00:00Z",
    })

    assert camel == snake
    assert camel["product_code"] == "A1"
    assert camel["checked_by"] == 7


def test_legacy_short_names():
    entry = snapshot_service.normalize_entry({"code": " B2 ", "description": "Bolt", "quantity": 1})

    assert entry["product_code"] == "B2"
    assert entry["product_description"] == "Bolt"
    assert entry["checked"] is False


def test_blank_code_normalizes_to_none():
    assert snapshot_service.normalize_entry({"productCode": "  ", "quantity": 1})["product_code"] is None


@pytest.mark.parametrize("raw", [None, "", b"[]", [], {"entries": []}])
def test_empty_payloads(raw):
    assert snapshot_service.normalize_payload(raw) == []


def test_json_string_payload():
    entries = snapshot_service.normalize_payload('[{"productCode": "A1", "quantity": 3}]')

    assert [(e["product_code"], e["quantity"]) for e in entries] == [("A1", 3)]


@pytest.mark.parametrize("raw", ["{broken", '{"a": 1}', 42, ["not-an-object"]])
def test_malformed_payloads(raw):
    with pytest.raises(CorruptSnapshot):
        snapshot_service.normalize_payload(raw)


def test_reconcile_generates_missing_product_ids():
    rows = reconcile_entries([
        {"productCode": "A1", "quantity": "2"},
        {"productCode": "A2", "productId": "p-2", "quantity": 1},
    ])

    assert rows[0]["quantity"] == 2
    assert rows[0]["product_id"]
    assert rows[0]["product_id_generated"] is True
    assert rows[1]["product_id"] == "p-2"
    assert rows[1]["product_id_generated"] is False


def test_reconcile_names_the_bad_element():
    with pytest.raises(CorruptSnapshot, match="#2"):
        reconcile_entries([{"productCode": "A1", "quantity": 1}, {"productCode": "A2", "quantity": 0}])


@pytest.mark.parametrize("raw, expected", [
    (None, False),
    (True, True),
    (False, False),
    (1, True),
    (0, False),
    ("true", True),
    ("TRUE", True),
    ("false", False),
    ("0", False),
    ("1", True),
    ("", False),
])
def test_checked_flag_spellings(raw, expected):
    assert snapshot_service.normalize_entry({"productCode": "A1", "quantity": 1, "checked": raw})["checked"] is expected


@pytest.mark.parametrize("raw", ["maybe", 2, -1, 0.5, ["x"]])
def test_unrecognised_checked_flag_is_corrupt(raw):
    with pytest.raises(CorruptSnapshot):
        snapshot_service.normalize_entry({"productCode": "A1", "quantity": 1, "checked": raw})
