# backend/app/services/products_service.py
"""
Products Service

Thin CRUD for product records. Stock is only set here on create; after
that every change goes through inventory_service. Price edits only affect
future sales (sale lines keep their own snapshot).
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Product, Supplier
from ..errors import ConflictError, ProductNotFoundError, ValidationError

PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "description", "category", "price_cents",
    "low_stock_threshold", "is_active", "supplier_id",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_supplier(supplier_id) -> None:
    if supplier_id is None or db.session.get(Supplier, supplier_id) is None:
        raise ValidationError("Supplier not found", details={"supplier_id": supplier_id})


def list_products(
    *,
    category: str | None = None,
    supplier_id: int | None = None,
    include_inactive: bool = False,
) -> dict:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)

    items = [p.to_dict() for p in query.order_by(Product.name.asc(), Product.id.asc()).all()]
    return {"items": items, "count": len(items)}


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def _integrity_conflict(exc: IntegrityError, patch: dict, product_id: int | None = None) -> ConflictError:
    sku = patch.get("sku")
    if sku is not None:
        clash = db.session.query(Product.id).filter(Product.sku == sku)
        if product_id is not None:
            clash = clash.filter(Product.id != product_id)
        if clash.first() is not None:
            return ConflictError("SKU already exists", details={"sku": sku})
    return ConflictError(
        "Product violates a database constraint",
        details={"product_id": product_id, "reason": str(exc.orig)},
    )


def create_product(*, patch: dict) -> Product:
    """Create a product. `stock_quantity` in the patch is the opening stock."""
    _require_supplier(patch.get("supplier_id"))

    product = Product(
        stock_quantity=patch.pop("stock_quantity", None) or 0,
        low_stock_threshold=current_app.config["DEFAULT_LOW_STOCK_THRESHOLD"],
    )
    apply_product_patch(product, patch)
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise _integrity_conflict(exc, patch)
    return product


def update_product(product_id: int, *, patch: dict) -> Product:
    """
    Apply a field patch.

    Product rows are versioned and every stock movement bumps the version,
    so a patch that overlaps a sale or void raises ConflictError (409)
    and the caller re-reads before retrying.
    """
    product = get_product(product_id)
    if "supplier_id" in patch:
        _require_supplier(patch["supplier_id"])

    apply_product_patch(product, patch)
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        current_app.logger.warning("Concurrent change to product %s; patch rejected", product_id)
        raise ConflictError("Product was modified concurrently", details={"product_id": product_id})
    except IntegrityError as exc:
        db.session.rollback()
        raise _integrity_conflict(exc, patch, product_id)
    return product
