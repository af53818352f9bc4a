from __future__ import annotations

from ..extensions import db
from prodday.time_utils import to_utc_z, to_iso_date
from .production import generate_id

HISTORY_TYPE_PRODUCTION = "production"
HISTORY_TYPE_ADJUSTMENT = "adjustment"


class Product(db.Model):
    """
    Product catalog row.

    The catalog is owned elsewhere (imports, back office); the production
    ledger only reads it when an operator scans a code, and finalize keeps
    the running production totals current.
    """
    __tablename__ = "products"

    id = db.Column(db.String(36), primary_key=True, default=generate_id)

    code = db.Column(db.String(100), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=False)
    photo_url = db.Column(db.Text, nullable=True)
    barcode = db.Column(db.String(100), nullable=True, index=True)

    total_produced = db.Column(db.Integer, nullable=False, default=0)
    last_produced_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "photo_url": self.photo_url,
            "barcode": self.barcode,
            "total_produced": self.total_produced,
            "last_produced_at": to_utc_z(self.last_produced_at),
        }


class ProductHistory(db.Model):
    """
    Append-only product movement history.

    Finalize writes one "production" row per ledger entry; reopen writes the
    compensating "adjustment" rows.
    """
    __tablename__ = "product_history"
    __table_args__ = (
        db.Index("ix_product_history_product_created", "product_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_id)

    product_id = db.Column(db.String(36), nullable=False)
    product_code = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False, default=HISTORY_TYPE_PRODUCTION)
    notes = db.Column(db.Text, nullable=True)
    session_date = db.Column(db.Date, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_code": self.product_code,
            "quantity": self.quantity,
            "type": self.type,
            "notes": self.notes,
            "session_date": to_iso_date(self.session_date),
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }
