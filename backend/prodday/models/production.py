from __future__ import annotations

import uuid

from ..extensions import db
from prodday.time_utils import to_utc_z, to_iso_date


def generate_id() -> str:
    return str(uuid.uuid4())


# Grouped adds always land on this slot; non-grouped adds take the next one.
GROUPED_LINE_NO = 0


class ProductionEntry(db.Model):
    """
    One ledger line for a product on an open production day.

    UNIQUENESS: (session_date, product_id, line_no) is unique at the storage
    layer. Grouped adds always target line_no 0, so repeated scans of the
    same product on the same day aggregate into one row.

    IMMUTABLE ONCE CHECKED: quantity/checked may not change and the row may
    not be deleted after checked=True (enforced in entry_service).
    """
    __tablename__ = "production_entries"
    __table_args__ = (
        db.UniqueConstraint("session_date", "product_id", "line_no", name="uq_entries_session_product_line"),
        db.Index("ix_entries_session_inserted", "session_date", "inserted_at"),
        db.CheckConstraint("quantity >= 1", name="ck_entries_quantity_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_id)

    session_date = db.Column(db.Date, nullable=False, index=True)

    product_id = db.Column(db.String(36), nullable=False)
    product_code = db.Column(db.String(100), nullable=False)
    product_description = db.Column(db.Text, nullable=False, default="")
    photo_url = db.Column(db.Text, nullable=True)

    line_no = db.Column(db.Integer, nullable=False, default=GROUPED_LINE_NO)

    quantity = db.Column(db.Integer, nullable=False)
    inserted_at = db.Column(db.DateTime(timezone=True), nullable=False)

    checked = db.Column(db.Boolean, nullable=False, default=False)
    checked_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    checked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    creator = db.relationship("User", foreign_keys=[created_by])
    checker = db.relationship("User", foreign_keys=[checked_by])

    def __repr__(self) -> str:
        return (
            f"<ProductionEntry id={self.id} date={self.session_date} "
            f"code={self.product_code!r} qty={self.quantity} checked={self.checked}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_date": to_iso_date(self.session_date),
            "product_id": self.product_id,
            "product_code": self.product_code,
            "product_description": self.product_description,
            "photo_url": self.photo_url,
            "line_no": self.line_no,
            "quantity": self.quantity,
            "inserted_at": to_utc_z(self.inserted_at),
            "checked": self.checked,
            "checked_by": self.checked_by,
            "checked_by_name": self.checker.display_name if self.checker else None,
            "checked_at": to_utc_z(self.checked_at),
            "created_by": self.created_by,
            "created_by_name": self.creator.display_name if self.creator else None,
        }


class ProductionDaySnapshot(db.Model):
    """
    Frozen record of a finalized production day.

    LIFECYCLE:
    - FINALIZE inserts (or, after a reopen, rewrites) the row with is_open=False
    - REOPEN flips is_open=True and stamps reopened_at/reopened_by; the row
      and its finalize metadata are kept

    payload holds the full entry list as captured at finalize time.
    """
    __tablename__ = "production_day_snapshots"

    id = db.Column(db.String(36), primary_key=True, default=generate_id)

    session_date = db.Column(db.Date, nullable=False, unique=True, index=True)

    total_items = db.Column(db.Integer, nullable=False)
    total_quantity = db.Column(db.Integer, nullable=False)

    payload = db.Column(db.JSON, nullable=False)

    finalized_at = db.Column(db.DateTime(timezone=True), nullable=False)
    finalized_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    is_open = db.Column(db.Boolean, nullable=False, default=False)
    reopened_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reopened_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    finalizer = db.relationship("User", foreign_keys=[finalized_by])
    reopener = db.relationship("User", foreign_keys=[reopened_by])

    def __repr__(self) -> str:
        return f"<ProductionDaySnapshot date={self.session_date} is_open={self.is_open}>"

    def to_dict(self, include_payload: bool = True) -> dict:
        data = {
            "id": self.id,
            "session_date": to_iso_date(self.session_date),
            "total_items": self.total_items,
            "total_quantity": self.total_quantity,
            "finalized_at": to_utc_z(self.finalized_at),
            "finalized_by": self.finalized_by,
            "finalized_by_name": self.finalizer.display_name if self.finalizer else None,
            "is_open": self.is_open,
            "reopened_at": to_utc_z(self.reopened_at),
            "reopened_by": self.reopened_by,
            "reopened_by_name": self.reopener.display_name if self.reopener else None,
        }
        if include_payload:
            data["payload"] = self.payload
        return data


class ProductionDayLock(db.Model):
    """
    Per-date lock anchor.

    No business data. Finalize/reopen select it FOR UPDATE, ledger mutators
    FOR SHARE, so work on one date serializes without blocking other dates.
    """
    __tablename__ = "production_day_locks"

    session_date = db.Column(db.Date, primary_key=True)
