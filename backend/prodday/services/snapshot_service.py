# Overview: Storage and payload normalization for finalized production-day snapshots.

"""
Snapshot store.

The payload column has been written in several shapes over time: a JSON
array, a JSON string holding an array, camelCase keys (productCode),
snake_case keys (product_code) and the oldest short names (code,
description). normalize_payload() is the only place that knows about this;
everything past it sees the canonical snake_case entry shape produced by
ProductionEntry.to_dict().
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any

from ..extensions import db
from ..models import ProductionDaySnapshot
from prodday.time_utils import utcnow
from .concurrency import lock_for_update
from .errors import CorruptSnapshot


FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id",),
    "session_date": ("session_date", "sessionDate"),
    "product_id": ("product_id", "productId"),
    "product_code": ("product_code", "productCode", "code"),
    "product_description": ("product_description", "productDescription", "description"),
    "photo_url": ("photo_url", "photoUrl"),
    "line_no": ("line_no", "lineNo"),
    "quantity": ("quantity",),
    "inserted_at": ("inserted_at", "insertedAt"),
    "checked": ("checked",),
    "checked_by": ("checked_by", "checkedBy"),
    "checked_by_name": ("checked_by_name", "checkedByName"),
    "checked_at": ("checked_at", "checkedAt"),
    "created_by": ("created_by", "createdBy"),
    "created_by_name": ("created_by_name", "createdByName"),
}


def _pick(element: dict, aliases: tuple[str, ...]) -> Any:
    for key in aliases:
        value = element.get(key)
        if value is not None:
            return value
    return None


_TRUE_STRINGS = {"true", "1", "yes", "y", "t"}
_FALSE_STRINGS = {"false", "0", "no", "n", "f", ""}


def _coerce_checked(value: Any) -> bool:
    """Booleans, 0/1 and their string spellings; anything else is corrupt."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise CorruptSnapshot(f"Snapshot entry has an unrecognised checked value: {value!r}")


def normalize_entry(element: Any) -> dict[str, Any]:
    if not isinstance(element, dict):
        raise CorruptSnapshot(f"Snapshot payload element is not an object: {element!r}")

    entry = {field: _pick(element, aliases) for field, aliases in FIELD_ALIASES.items()}

    code = entry["product_code"]
    entry["product_code"] = str(code).strip() if code is not None else None
    if not entry["product_code"]:
        entry["product_code"] = None
    entry["checked"] = _coerce_checked(entry["checked"])
    return entry


def normalize_payload(raw: Any) -> list[dict[str, Any]]:
    """
    Decode a stored payload into canonical entry dicts.

    Raises:
        CorruptSnapshot: if the payload is not (or does not decode to) a list of objects
    """
    if raw is None:
        return []
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else []
        except json.JSONDecodeError as exc:
            raise CorruptSnapshot(f"Snapshot payload is not valid JSON: {exc}") from exc
    if isinstance(raw, dict) and isinstance(raw.get("entries"), list):
        raw = raw["entries"]
    if not isinstance(raw, list):
        raise CorruptSnapshot("Snapshot payload is not a list of entries")
    return [normalize_entry(element) for element in raw]


def build_payload(entries) -> list[dict[str, Any]]:
    """Serialize ledger rows (with actor names) into the canonical payload."""
    return [entry.to_dict() for entry in entries]


def get_snapshot(session_date: date, *, for_update: bool = False) -> ProductionDaySnapshot | None:
    query = db.session.query(ProductionDaySnapshot).filter_by(session_date=session_date)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def snapshot_entries(session_date: date) -> list[dict[str, Any]]:
    """Normalized payload of a day's snapshot, for read-only display."""
    snapshot = get_snapshot(session_date)
    if snapshot is None:
        return []
    return normalize_payload(snapshot.payload)


def write_snapshot(
    session_date: date,
    payload: list[dict[str, Any]],
    user_id: int | None,
    existing: ProductionDaySnapshot | None = None,
) -> ProductionDaySnapshot:
    """
    Insert the snapshot row, or rewrite a reopened one in place.

    Reopen metadata on a rewritten row is kept as the record of the last
    reopen. Does not commit.
    """
    snapshot = existing
    if snapshot is None:
        snapshot = ProductionDaySnapshot(session_date=session_date)
        db.session.add(snapshot)

    snapshot.total_items = len(payload)
    snapshot.total_quantity = sum(int(e["quantity"]) for e in payload)
    snapshot.payload = payload
    snapshot.finalized_at = utcnow()
    snapshot.finalized_by = user_id
    snapshot.is_open = False

    db.session.flush()
    return snapshot


def mark_reopened(snapshot: ProductionDaySnapshot, user_id: int | None) -> ProductionDaySnapshot:
    snapshot.is_open = True
    snapshot.reopened_at = utcnow()
    snapshot.reopened_by = user_id
    db.session.flush()
    return snapshot
