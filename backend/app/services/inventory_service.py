# Overview: Product ledger; the only code that changes stock_quantity.

# backend/app/services/inventory_service.py

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product
from ..errors import (
    LedgerIntegrityError,
    ProductNotFoundError,
    InsufficientStockError,
    ValidationError,
)
from .concurrency import begin_write, rollback_after_failure
"""
Stock Ledger Invariants (authoritative)

- Product.stock_quantity is never negative.
- Every change is ONE conditional UPDATE evaluated by the database:
    reserve: SET stock = stock - q WHERE id = :id AND is_active AND stock >= q
    restore: SET stock = stock + q WHERE id = :id
  Never read the row, change the attribute in Python and flush it back.
- Multi-product changes run inside a SAVEPOINT in ascending product id
  order; any failure rolls the SAVEPOINT back before the error escapes,
  so no partial decrement survives.
- Functions here never commit. The caller owns the transaction.
- No retries: a failed reservation raises immediately.
"""


def _require_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer", details={"quantity": quantity})
    if quantity < 1:
        raise ValidationError("quantity must be at least 1", details={"quantity": quantity})
    return quantity


def _current_stock(product_id: int) -> tuple[int, bool, str] | None:
    row = (
        db.session.query(Product.stock_quantity, Product.is_active, Product.name)
        .filter(Product.id == product_id)
        .first()
    )
    if row is None:
        return None
    return int(row.stock_quantity), bool(row.is_active), row.name


def get_stock(product_id: int) -> int:
    """Read stock straight from the database (bypasses the identity map)."""
    current = _current_stock(product_id)
    if current is None:
        raise ProductNotFoundError(product_id)
    return current[0]


def reserve_stock(product_id: int, quantity: int) -> None:
    """
    Atomically take `quantity` units of an active product.

    Raises InsufficientStockError(available, requested) when the row exists
    but does not have enough stock, ProductNotFoundError when it is missing
    or inactive.
    """
    quantity = _require_quantity(quantity)

    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.is_active.is_(True),
            Product.stock_quantity >= quantity,
        )
        .values(
            stock_quantity=Product.stock_quantity - quantity,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount == 1:
        return

    current = _current_stock(product_id)
    if current is None or not current[1]:
        raise ProductNotFoundError(product_id)
    available, _, name = current
    raise InsufficientStockError(product_id, available=available, requested=quantity, name=name)


def restore_stock(product_id: int, quantity: int) -> None:
    """Atomically put `quantity` units back. Inactive products still accept restores."""
    quantity = _require_quantity(quantity)

    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(
            stock_quantity=Product.stock_quantity + quantity,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise ProductNotFoundError(product_id)


def _aggregate(items) -> list[tuple[int, int]]:
    """Sum quantities per product and order by product id (lock ordering)."""
    totals: dict[int, int] = {}
    for product_id, quantity in items:
        quantity = _require_quantity(quantity)
        totals[product_id] = totals.get(product_id, 0) + quantity
    return sorted(totals.items())


def _apply_all(items, step, operation: str) -> None:
    ordered = _aggregate(items)
    begin_write()
    savepoint = db.session.begin_nested()
    try:
        for product_id, quantity in ordered:
            step(product_id, quantity)
    except BaseException:
        try:
            savepoint.rollback()
        except SQLAlchemyError as exc:
            current_app.logger.critical(
                "Savepoint rollback failed during %s of %s", operation, ordered
            )
            raise LedgerIntegrityError(
                f"Could not undo partial {operation}; stock may be inconsistent",
                details={"operation": operation, "items": [list(i) for i in ordered]},
            ) from exc
        raise
    savepoint.commit()


def reserve_items(items) -> None:
    """
    Reserve stock for several (product_id, quantity) pairs, all or nothing.

    Quantities for the same product are summed first, so the availability
    check covers the whole cart.
    """
    _apply_all(items, reserve_stock, "reservation")


def restore_items(items) -> None:
    """Restore stock for several (product_id, quantity) pairs, all or nothing."""
    _apply_all(items, restore_stock, "restore")


def adjust_stock(product_id: int, quantity, operation: str = "set") -> Product:
    """
    Manual stock correction (receiving, counts). Commits.

    operation="set" overwrites the count, operation="add" adds a signed
    delta; both are a single UPDATE and can never go below zero.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer", details={"quantity": quantity})
    if operation not in ("set", "add"):
        raise ValidationError("operation must be 'set' or 'add'", details={"operation": operation})

    conditions = [Product.id == product_id]
    if operation == "set":
        if quantity < 0:
            raise ValidationError("quantity cannot be negative", details={"quantity": quantity})
        new_value = quantity
    else:
        new_value = Product.stock_quantity + quantity
        conditions.append(Product.stock_quantity + quantity >= 0)

    try:
        begin_write()
        result = db.session.execute(
            update(Product)
            .where(*conditions)
            .values(stock_quantity=new_value, version_id=Product.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = _current_stock(product_id)
            if current is None:
                raise ProductNotFoundError(product_id)
            raise InsufficientStockError(
                product_id, available=current[0], requested=-quantity, name=current[2]
            )
        db.session.commit()
    except BaseException:
        rollback_after_failure("stock adjustment", product_id=product_id)
        raise

    product = db.session.get(Product, product_id)
    current_app.logger.info(
        "Stock %s for product %s: %s -> %s", operation, product_id, quantity, product.stock_quantity
    )
    return product


def inventory_status(low_stock_only: bool = False) -> dict:
    """Active products ordered by stock ascending, with summary counts."""
    query = db.session.query(Product).filter(Product.is_active.is_(True))
    if low_stock_only:
        query = query.filter(Product.stock_quantity <= Product.low_stock_threshold)
    products = query.order_by(Product.stock_quantity.asc(), Product.id.asc()).all()

    return {
        "summary": {
            "total_products": len(products),
            "low_stock_products": sum(1 for p in products if p.is_low_stock),
            "out_of_stock_products": sum(1 for p in products if p.stock_quantity == 0),
        },
        "count": len(products),
        "items": [p.to_dict() for p in products],
    }


def low_stock_alerts() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.stock_quantity <= Product.low_stock_threshold,
        )
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .all()
    )
