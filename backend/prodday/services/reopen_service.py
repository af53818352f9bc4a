# Overview: Rebuilds ledger rows from a snapshot payload when a day is reopened.

from __future__ import annotations

from typing import Any

from ..extensions import db
from ..models import ProductionDaySnapshot, ProductionEntry, User
from ..models.production import generate_id
from prodday.time_utils import parse_iso_datetime, utcnow
from .errors import CorruptSnapshot
from .snapshot_service import normalize_payload


def _coerce_quantity(value: Any, position: int) -> int:
    if isinstance(value, bool):
        raise CorruptSnapshot(f"Snapshot entry #{position} has an invalid quantity: {value!r}")
    try:
        quantity = int(value)
    except (TypeError, ValueError, OverflowError):
        raise CorruptSnapshot(f"Snapshot entry #{position} has an invalid quantity: {value!r}") from None
    if quantity != value and not isinstance(value, str):
        raise CorruptSnapshot(f"Snapshot entry #{position} has a fractional quantity: {value!r}")
    if quantity < 1:
        raise CorruptSnapshot(f"Snapshot entry #{position} has a non-positive quantity: {quantity}")
    return quantity


def _parse_timestamp(value: Any):
    try:
        return parse_iso_datetime(value)
    except (TypeError, ValueError):
        return None


class _ActorResolver:
    """Maps payload actor references (ids, usernames, display names) to user ids."""

    def __init__(self):
        self._cache: dict[Any, int | None] = {}

    def resolve(self, ref: Any, name: Any = None) -> int | None:
        for candidate in (ref, name):
            if candidate is None or isinstance(candidate, bool):
                continue
            key = str(candidate).strip()
            if not key:
                continue
            if key not in self._cache:
                self._cache[key] = self._lookup(key)
            if self._cache[key] is not None:
                return self._cache[key]
        return None

    @staticmethod
    def _lookup(key: str) -> int | None:
        if key.isdigit():
            user = db.session.get(User, int(key))
            if user:
                return user.id
        user = db.session.query(User).filter(
            (User.username == key) | (User.name == key)
        ).first()
        return user.id if user else None


def reconcile_entries(raw_payload: Any) -> list[dict[str, Any]]:
    """
    Validate and canonicalize every payload element before anything is written.

    product_code is mandatory and quantity must be a positive integer; a
    single bad element fails the whole reopen. A missing product_id gets a
    fresh identifier (flagged as product_id_generated).

    Raises:
        CorruptSnapshot: on any element that cannot be restored
    """
    rows = []
    for position, element in enumerate(normalize_payload(raw_payload), start=1):
        if not element["product_code"]:
            raise CorruptSnapshot(f"Snapshot entry #{position} has no product code")

        quantity = _coerce_quantity(element["quantity"], position)

        product_id = element["product_id"]
        generated = not product_id
        if generated:
            product_id = generate_id()

        rows.append({
            **element,
            "product_id": str(product_id),
            "product_description": str(element["product_description"] or ""),
            "quantity": quantity,
            "product_id_generated": generated,
        })
    return rows


def rebuild_ledger(snapshot: ProductionDaySnapshot) -> list[dict[str, Any]]:
    """
    Replace the ledger rows of the snapshot's date with the payload contents.

    Existing rows for the date are removed first (leftovers of an earlier
    partial reopen or stray inserts). Runs inside the caller's transaction;
    does not commit.

    Returns the reconciled payload rows that were restored.
    """
    rows = reconcile_entries(snapshot.payload)
    session_date = snapshot.session_date

    db.session.query(ProductionEntry).filter_by(session_date=session_date).delete(
        synchronize_session=False
    )

    resolver = _ActorResolver()
    next_line: dict[str, int] = {}
    now = utcnow()

    for row in rows:
        line_no = next_line.get(row["product_id"], 0)
        next_line[row["product_id"]] = line_no + 1

        checked = bool(row["checked"])
        entry = ProductionEntry(
            id=generate_id(),
            session_date=session_date,
            product_id=row["product_id"],
            product_code=row["product_code"],
            product_description=row["product_description"],
            photo_url=row["photo_url"],
            line_no=line_no,
            quantity=row["quantity"],
            inserted_at=_parse_timestamp(row["inserted_at"]) or now,
            checked=checked,
            checked_by=resolver.resolve(row["checked_by"], row["checked_by_name"]) if checked else None,
            checked_at=_parse_timestamp(row["checked_at"]) if checked else None,
            created_by=resolver.resolve(row["created_by"], row["created_by_name"]),
        )
        db.session.add(entry)

    db.session.flush()
    return rows
