# Overview: Production entry ledger (add with grouping, quantity edits, delete, listing).

"""
Entry ledger for open production days.

WHY: Operators scan the same barcode many times a day; with grouping on,
each scan must accumulate into the product's single row for the day rather
than duplicate it. That add is the hottest write path in the system, so it
is a single atomic upsert guarded by the unique constraint on
(session_date, product_id, line_no).

GUARDS (in this order for id-based mutators):
1. EntryNotFound
2. AlreadyChecked: conferred rows are frozen
3. DayClosed: the day has a closed snapshot

All mutators hold the shared day lock, so they serialize against
finalize/reopen of the same date only.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import func
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Product, ProductionEntry
from ..models.production import GROUPED_LINE_NO, generate_id
from prodday.time_utils import utcnow
from .audit_service import ENTITY_ENTRY, log_audit
from .concurrency import lock_day, lock_for_update, run_in_transaction
from .day_service import ensure_day_open
from .errors import AlreadyChecked, BelowMinimum, EntryNotFound, InvalidQuantity


_CONFLICT_COLUMNS = ["session_date", "product_id", "line_no"]


def _require_positive_int(value, label: str = "quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantity(f"{label} must be an integer, got {value!r}")
    if value < 1:
        raise InvalidQuantity(f"{label} must be at least 1, got {value}")
    return value


def _require_int(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantity(f"{label} must be an integer, got {value!r}")
    return value


def load_mutable_entry(entry_id: str) -> ProductionEntry:
    """
    Lock an entry for mutation inside the current transaction.

    Takes the shared day lock first (same order as finalize: day, then rows).

    Raises:
        EntryNotFound, AlreadyChecked, DayClosed
    """
    entry = db.session.get(ProductionEntry, entry_id)
    if entry is None:
        raise EntryNotFound(f"Entry {entry_id} not found")

    lock_day(entry.session_date, shared=True)

    entry = lock_for_update(
        db.session.query(ProductionEntry).filter_by(id=entry_id)
    ).populate_existing().first()
    if entry is None:
        raise EntryNotFound(f"Entry {entry_id} not found")

    if entry.checked:
        raise AlreadyChecked(f"Entry {entry.product_code} is already checked and cannot be changed")

    ensure_day_open(entry.session_date)
    return entry


def _grouped_upsert_statement(values: dict):
    table = ProductionEntry.__table__
    dialect = db.session.get_bind().dialect.name
    if dialect in ("sqlite", "postgresql"):
        dialect_insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
        ins = dialect_insert(table).values(**values)
        return ins.on_conflict_do_update(
            index_elements=_CONFLICT_COLUMNS,
            set_={"quantity": table.c.quantity + ins.excluded.quantity},
        )
    if dialect in ("mysql", "mariadb"):
        ins = mysql.insert(table).values(**values)
        return ins.on_duplicate_key_update(quantity=table.c.quantity + ins.inserted.quantity)
    return None


def _add_grouped(values: dict, existing: list[ProductionEntry]) -> ProductionEntry:
    stmt = _grouped_upsert_statement(values)
    if stmt is not None:
        db.session.execute(stmt)
    else:
        current = next((e for e in existing if e.line_no == GROUPED_LINE_NO), None)
        if current is not None:
            current.quantity = current.quantity + values["quantity"]
        else:
            db.session.add(ProductionEntry(**values))
        db.session.flush()

    return (
        db.session.query(ProductionEntry)
        .filter_by(
            session_date=values["session_date"],
            product_id=values["product_id"],
            line_no=GROUPED_LINE_NO,
        )
        .populate_existing()
        .one()
    )


def add_entry(
    session_date: date,
    product: Product,
    quantity: int,
    user_id: int | None,
    grouping: bool = True,
) -> ProductionEntry:
    """
    Add a product quantity to a day's ledger.

    With grouping, the quantity is added to the product's existing row for
    the day (or a new row is created). Without grouping, a new row is always
    inserted on the next free line.

    Raises:
        InvalidQuantity: quantity is not a positive integer
        DayClosed: the day is finalized
        AlreadyChecked: the product was already conferred for the day
    """
    quantity = _require_positive_int(quantity)
    new_id = generate_id()

    def _op():
        lock_day(session_date, shared=True)
        ensure_day_open(session_date)

        existing = lock_for_update(
            db.session.query(ProductionEntry).filter_by(
                session_date=session_date, product_id=product.id
            )
        ).all()
        if any(e.checked for e in existing):
            raise AlreadyChecked(
                f"Product {product.code} is already checked for {session_date.isoformat()}"
            )

        values = {
            "id": new_id,
            "session_date": session_date,
            "product_id": product.id,
            "product_code": product.code,
            "product_description": product.description or "",
            "photo_url": product.photo_url,
            "line_no": GROUPED_LINE_NO,
            "quantity": quantity,
            "inserted_at": utcnow(),
            "checked": False,
            "created_by": user_id,
        }

        if grouping:
            return _add_grouped(values, existing)

        if existing:
            values["line_no"] = max(e.line_no for e in existing) + 1
        entry = ProductionEntry(**values)
        db.session.add(entry)
        db.session.flush()
        return entry

    # A concurrent non-grouped add can take the same line_no; retry re-reads it
    entry = run_in_transaction(_op, retry_on=(IntegrityError,))

    created = entry.id == new_id
    log_audit(
        user_id,
        "create" if created else "update",
        ENTITY_ENTRY,
        entity_id=entry.id,
        entity_code=entry.product_code,
        details={
            "product_code": entry.product_code,
            "product_description": entry.product_description,
            "quantity": quantity if created else entry.quantity,
            "added": quantity,
            "session_date": session_date.isoformat(),
        },
    )
    return entry


def set_quantity(entry_id: str, quantity: int, user_id: int | None) -> ProductionEntry:
    """
    Replace an entry's quantity.

    Raises:
        InvalidQuantity, EntryNotFound, AlreadyChecked, DayClosed
    """
    quantity = _require_positive_int(quantity)

    def _op():
        entry = load_mutable_entry(entry_id)
        entry.quantity = quantity
        db.session.flush()
        return entry

    entry = run_in_transaction(_op)
    _audit_quantity_change(entry, user_id)
    return entry


def adjust_quantity(entry_id: str, delta: int, user_id: int | None) -> ProductionEntry:
    """
    Add delta (may be negative) to an entry's quantity.

    Raises:
        BelowMinimum: the result would be under 1
        InvalidQuantity, EntryNotFound, AlreadyChecked, DayClosed
    """
    delta = _require_int(delta, "delta")

    def _op():
        entry = load_mutable_entry(entry_id)
        new_quantity = entry.quantity + delta
        if new_quantity < 1:
            raise BelowMinimum(
                f"Quantity of {entry.product_code} cannot go below 1 (current {entry.quantity}, delta {delta})"
            )
        entry.quantity = new_quantity
        db.session.flush()
        return entry

    entry = run_in_transaction(_op)
    _audit_quantity_change(entry, user_id)
    return entry


def _audit_quantity_change(entry: ProductionEntry, user_id: int | None) -> None:
    log_audit(
        user_id,
        "update",
        ENTITY_ENTRY,
        entity_id=entry.id,
        entity_code=entry.product_code,
        details={
            "product_code": entry.product_code,
            "product_description": entry.product_description,
            "quantity": entry.quantity,
        },
    )


def delete_entry(entry_id: str, user_id: int | None) -> None:
    """
    Remove an unchecked entry from an open day.

    Raises:
        EntryNotFound, AlreadyChecked, DayClosed
    """
    def _op():
        entry = load_mutable_entry(entry_id)
        removed = {
            "product_code": entry.product_code,
            "product_description": entry.product_description,
            "quantity": entry.quantity,
            "session_date": entry.session_date.isoformat(),
        }
        db.session.delete(entry)
        db.session.flush()
        return removed

    removed = run_in_transaction(_op)
    log_audit(
        user_id,
        "delete",
        ENTITY_ENTRY,
        entity_id=entry_id,
        entity_code=removed["product_code"],
        details=removed,
    )


def list_by_date(session_date: date) -> list[ProductionEntry]:
    """Ledger rows for a day with creator/checker loaded, newest first."""
    return (
        db.session.query(ProductionEntry)
        .options(joinedload(ProductionEntry.creator), joinedload(ProductionEntry.checker))
        .filter_by(session_date=session_date)
        .order_by(ProductionEntry.inserted_at.desc(), ProductionEntry.id)
        .all()
    )


def summary(session_date: date) -> dict:
    """total_items is the row count; total_quantity the sum of quantities."""
    total_items, total_quantity = (
        db.session.query(
            func.count(ProductionEntry.id),
            func.coalesce(func.sum(ProductionEntry.quantity), 0),
        )
        .filter(ProductionEntry.session_date == session_date)
        .one()
    )
    return {
        "session_date": session_date.isoformat(),
        "total_items": int(total_items or 0),
        "total_quantity": int(total_quantity or 0),
    }
