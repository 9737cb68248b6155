"""
Sales Service - cart to durable sale, and one-way void.

create_sale and void_sale each run as ONE database transaction:
- create: validate -> price (snapshot) -> reserve stock -> allocate number -> insert
- void:   compare-and-set is_void -> restore stock
Any failure rolls the whole transaction back before the error reaches the
caller, so a failed sale never leaves a stock decrement behind and a void
restores stock exactly once.
"""

from __future__ import annotations

import math
import re
from datetime import timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from ..extensions import db
from ..models import Sale, SaleLine, Product, User, PAYMENT_METHODS
from ..errors import (
    AlreadyVoidError,
    ConflictError,
    EmptyCartError,
    InvalidPaymentMethodError,
    ProductNotFoundError,
    SaleNotFoundError,
    ValidationError,
    VoidWindowExpiredError,
)
from app.time_utils import as_utc_naive, day_window_utc, parse_iso_date, utcnow
from .inventory_service import reserve_items, restore_items
from .document_service import next_sale_number
from .concurrency import begin_write, lock_for_update, rollback_after_failure


PAYMENT_METHOD_ALIASES = {"mobile_payment": "mobile"}
CUSTOMER_FIELDS = ("name", "email", "phone")
MAX_PAGE_SIZE = 200

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# =============================================================================
# Input normalization (no side effects)
# =============================================================================

def _require_int(value, field: str, *, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    if value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", details={field: value})
    return value


def _normalize_items(items) -> list[tuple[int, int]]:
    if not items:
        raise EmptyCartError()
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list")

    normalized = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object", details={"index": index})
        product_id = item.get("product_id", item.get("product"))
        quantity = item.get("quantity")
        try:
            product_id = _require_int(product_id, "product_id", minimum=1)
            quantity = _require_int(quantity, "quantity", minimum=1)
        except ValidationError as exc:
            exc.details["index"] = index
            raise
        normalized.append((product_id, quantity))
    return normalized


def normalize_payment_method(payment_method) -> str:
    if not isinstance(payment_method, str):
        raise InvalidPaymentMethodError(payment_method, PAYMENT_METHODS)
    method = payment_method.strip().lower()
    method = PAYMENT_METHOD_ALIASES.get(method, method)
    if method not in PAYMENT_METHODS:
        raise InvalidPaymentMethodError(payment_method, PAYMENT_METHODS)
    return method


def _normalize_customer(customer: dict | None) -> dict:
    customer = customer or {}
    if not isinstance(customer, dict):
        raise ValidationError("customer must be an object")

    cleaned = {}
    for field in CUSTOMER_FIELDS:
        value = customer.get(field)
        if value is None:
            cleaned[field] = None
            continue
        value = str(value).strip()
        cleaned[field] = value or None

    if cleaned["email"] and not _EMAIL_RE.match(cleaned["email"]):
        raise ValidationError("Please provide a valid email", details={"customer_email": cleaned["email"]})
    return cleaned


def _require_actor(actor_id) -> User:
    actor_id = _require_int(actor_id, "actor_id", minimum=1)
    user = db.session.get(User, actor_id)
    if user is None or not user.is_active:
        raise ValidationError("Unknown or inactive user", details={"actor_id": actor_id})
    return user


def compute_tax_cents(subtotal_cents: int, rate_bps: int | None = None) -> int:
    """VAT on a subtotal, rounded half-up to the cent."""
    if rate_bps is None:
        rate_bps = current_app.config["VAT_RATE_BPS"]
    return (subtotal_cents * rate_bps + 5000) // 10000


# =============================================================================
# Transaction orchestrator
# =============================================================================

def _load_products(product_ids: list[int]) -> dict[int, Product]:
    """Resolve every cart product to an active product, in cart order."""
    unique_ids = sorted(set(product_ids))
    products = (
        lock_for_update(db.session.query(Product).filter(Product.id.in_(unique_ids)))
        .all()
    )
    by_id = {p.id: p for p in products}
    for product_id in product_ids:
        product = by_id.get(product_id)
        if product is None or not product.is_active:
            raise ProductNotFoundError(product_id)
    return by_id


def create_sale(
    items,
    *,
    payment_method,
    actor_id,
    customer: dict | None = None,
    discount_cents=0,
) -> Sale:
    """
    Turn a cart into a persisted sale.

    items: [{"product_id": int, "quantity": int}, ...]

    Raises EmptyCartError, ValidationError, InvalidPaymentMethodError,
    ProductNotFoundError, InsufficientStockError. On any of these stock is
    exactly what it was before the call.
    """
    cart = _normalize_items(items)
    method = normalize_payment_method(payment_method)
    customer = _normalize_customer(customer)
    discount_cents = _require_int(discount_cents, "discount_cents", minimum=0)
    _require_actor(actor_id)

    try:
        begin_write()
        products = _load_products([product_id for product_id, _ in cart])

        lines = []
        for line_number, (product_id, quantity) in enumerate(cart, start=1):
            unit_price = products[product_id].price_cents
            lines.append(
                SaleLine(
                    line_number=line_number,
                    product_id=product_id,
                    quantity=quantity,
                    unit_price_cents=unit_price,
                    line_total_cents=unit_price * quantity,
                )
            )

        subtotal = sum(line.line_total_cents for line in lines)
        tax = compute_tax_cents(subtotal)
        if discount_cents > subtotal + tax:
            raise ValidationError(
                "Discount cannot exceed the sale total",
                details={"discount_cents": discount_cents, "gross_cents": subtotal + tax},
            )

        reserve_items(cart)

        created_at = utcnow()
        sale = Sale(
            sale_number=next_sale_number(created_at),
            subtotal_cents=subtotal,
            tax_cents=tax,
            discount_cents=discount_cents,
            total_cents=subtotal + tax - discount_cents,
            payment_method=method,
            customer_name=customer["name"],
            customer_email=customer["email"],
            customer_phone=customer["phone"],
            is_void=False,
            cashier_id=actor_id,
            created_at=created_at,
            lines=lines,
        )
        db.session.add(sale)
        db.session.commit()
    except BaseException as exc:
        rollback_after_failure("sale creation", actor_id=actor_id, items=[list(i) for i in cart])
        if isinstance(exc, ConflictError):
            current_app.logger.warning("Sale rejected: %s %s", exc.message, exc.details)
        elif isinstance(exc, OperationalError):
            current_app.logger.warning("Sale aborted, database unavailable: %s", exc.orig)
        raise

    current_app.logger.info(
        "Sale %s created by user %s: %s line(s), total_cents=%s",
        sale.sale_number,
        actor_id,
        len(cart),
        sale.total_cents,
    )
    return sale


# =============================================================================
# Reads
# =============================================================================

def hydrate_sale(sale: Sale) -> Sale:
    """
    Attach current product name/SKU to each line for display.

    Read-time only: the price snapshot on the line is never touched.
    """
    product_ids = {line.product_id for line in sale.lines}
    if not product_ids:
        return sale
    rows = (
        db.session.query(Product.id, Product.name, Product.sku)
        .filter(Product.id.in_(product_ids))
        .all()
    )
    names = {row.id: (row.name, row.sku) for row in rows}
    for line in sale.lines:
        line.product_name, line.product_sku = names.get(line.product_id, (None, None))
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError(sale_id)
    return hydrate_sale(sale)


def list_sales(
    *,
    start=None,
    end=None,
    cashier_id: int | None = None,
    include_void: bool = True,
    page: int = 1,
    limit: int = 50,
) -> dict:
    """Newest first, paginated. start/end are inclusive business-day dates."""
    page = _require_int(page, "page", minimum=1)
    limit = min(_require_int(limit, "limit", minimum=1), MAX_PAGE_SIZE)

    query = db.session.query(Sale)
    tz_name = current_app.config["BUSINESS_TIMEZONE"]
    try:
        start_day = parse_iso_date(start)
        end_day = parse_iso_date(end)
    except ValueError:
        raise ValidationError("Dates must be YYYY-MM-DD", details={"start": start, "end": end})
    if start_day:
        query = query.filter(Sale.created_at >= day_window_utc(start_day, start_day, tz_name)[0])
    if end_day:
        query = query.filter(Sale.created_at < day_window_utc(end_day, end_day, tz_name)[1])
    if cashier_id is not None:
        query = query.filter(Sale.cashier_id == cashier_id)
    if not include_void:
        query = query.filter(Sale.is_void.is_(False))

    total = query.count()
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": [hydrate_sale(s).to_dict() for s in sales],
        "count": len(sales),
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if total else 0,
    }


# =============================================================================
# Void processor
# =============================================================================

def _check_void_window(sale: Sale) -> None:
    hours = current_app.config.get("VOID_WINDOW_HOURS")
    if hours is None:
        return
    if utcnow() - as_utc_naive(sale.created_at) > timedelta(hours=hours):
        raise VoidWindowExpiredError(sale.id, hours)


def void_sale(sale_id: int, actor_id) -> Sale:
    """
    Void a sale and put its stock back.

    The is_void flag is flipped with a compare-and-set UPDATE; only the
    caller whose UPDATE matched restores stock, in the same transaction.
    A second (or concurrent) void gets AlreadyVoidError and changes nothing.
    """
    _require_actor(actor_id)

    try:
        begin_write()
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise SaleNotFoundError(sale_id)
        if sale.is_void:
            raise AlreadyVoidError(sale_id)
        _check_void_window(sale)

        result = db.session.execute(
            update(Sale)
            .where(Sale.id == sale_id, Sale.is_void.is_(False))
            .values(
                is_void=True,
                voided_at=utcnow(),
                voided_by_user_id=actor_id,
                version_id=Sale.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyVoidError(sale_id)

        restore_items([(line.product_id, line.quantity) for line in sale.lines])
        db.session.commit()
    except BaseException as exc:
        rollback_after_failure("sale void", sale_id=sale_id, actor_id=actor_id)
        if isinstance(exc, ConflictError):
            current_app.logger.warning("Void rejected: %s %s", exc.message, exc.details)
        elif isinstance(exc, OperationalError):
            current_app.logger.warning("Void of sale %s aborted, database unavailable: %s", sale_id, exc.orig)
        raise

    sale = db.session.get(Sale, sale_id)
    current_app.logger.info("Sale %s voided by user %s", sale.sale_number, actor_id)
    return hydrate_sale(sale)
