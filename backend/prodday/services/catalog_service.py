# Overview: Read-only product catalog lookups used when an operator scans a code.

from __future__ import annotations

from ..extensions import db
from ..models import Product
from .errors import ProductNotFound


def normalize_code(code: str) -> str:
    """Catalog codes are stored upper-case and trimmed."""
    return (code or "").strip().upper()


def get_product_by_code(code: str) -> Product | None:
    """Resolve a scanned value against product code, then barcode."""
    normalized = normalize_code(code)
    if not normalized:
        return None
    product = db.session.query(Product).filter_by(code=normalized).first()
    if product:
        return product
    return db.session.query(Product).filter_by(barcode=code.strip()).first()


def get_product(product_id: str) -> Product | None:
    return db.session.get(Product, product_id)


def resolve_product(*, product_id: str | None = None, product_code: str | None = None) -> Product:
    """
    Resolve a product by id or code.

    Raises:
        ProductNotFound: if neither identifier matches a catalog row
    """
    product = None
    if product_id:
        product = get_product(product_id)
    if product is None and product_code:
        product = get_product_by_code(product_code)
    if product is None:
        raise ProductNotFound(f"Product {product_code or product_id!r} not found in catalog")
    return product


def add_product(code: str, description: str, photo_url: str | None = None, barcode: str | None = None) -> Product:
    """
    Insert or refresh a catalog row (bootstrap helper for the CLI and tests).

    Catalog maintenance proper belongs to the import tooling.
    """
    normalized = normalize_code(code)
    if not normalized or not (description or "").strip():
        raise ValueError("code and description are required")

    product = db.session.query(Product).filter_by(code=normalized).first()
    if product is None:
        product = Product(code=normalized, total_produced=0)
        db.session.add(product)
    product.description = description.strip().upper()
    if photo_url is not None:
        product.photo_url = photo_url
    if barcode is not None:
        product.barcode = barcode or None
    db.session.commit()
    return product
