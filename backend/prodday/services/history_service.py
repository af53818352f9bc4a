# Overview: Append-only product movement history and running production totals.

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import Product, ProductHistory
from ..models.catalog import HISTORY_TYPE_PRODUCTION, HISTORY_TYPE_ADJUSTMENT
from prodday.time_utils import utcnow


def record_finalized_entries(entries: list[dict], session_date: date, user_id: int | None) -> list[ProductHistory]:
    """
    Append one production record per finalized entry and bump catalog totals.

    Runs inside the finalize transaction; does not commit.
    """
    rows = []
    now = utcnow()
    for entry in entries:
        row = ProductHistory(
            product_id=entry["product_id"],
            product_code=entry["product_code"],
            quantity=entry["quantity"],
            type=HISTORY_TYPE_PRODUCTION,
            notes=f"Production day {session_date.isoformat()} finalized",
            session_date=session_date,
            created_by=user_id,
            created_at=now,
        )
        db.session.add(row)
        rows.append(row)
        _bump_product_total(entry["product_id"], entry["quantity"], now)
    return rows


def record_reopened_entries(entries: list[dict], session_date: date, user_id: int | None) -> list[ProductHistory]:
    """Append compensating adjustment records for a reopened day."""
    rows = []
    now = utcnow()
    for entry in entries:
        row = ProductHistory(
            product_id=entry["product_id"],
            product_code=entry["product_code"],
            quantity=-entry["quantity"],
            type=HISTORY_TYPE_ADJUSTMENT,
            notes=f"Production day {session_date.isoformat()} reopened",
            session_date=session_date,
            created_by=user_id,
            created_at=now,
        )
        db.session.add(row)
        rows.append(row)
        _bump_product_total(entry["product_id"], -entry["quantity"], None)
    return rows


def _bump_product_total(product_id: str, delta: int, produced_at) -> None:
    product = db.session.get(Product, product_id)
    if product is None:
        # Snapshot rows may reference products since removed from the catalog
        return
    product.total_produced = max(0, (product.total_produced or 0) + delta)
    if produced_at is not None:
        product.last_produced_at = produced_at


def get_product_history(product_id: str) -> list[ProductHistory]:
    return (
        db.session.query(ProductHistory)
        .filter_by(product_id=product_id)
        .order_by(ProductHistory.created_at.desc())
        .all()
    )
