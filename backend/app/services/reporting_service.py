# Overview: Read-only sales and inventory rollups; voided sales never count as revenue.

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy import func

from app.extensions import db
from app.errors import ValidationError
from app.models import Product, Sale, SaleLine
from app.time_utils import day_window_utc, parse_iso_date, to_business_time


GRANULARITIES = ("day", "week", "month")
RECENT_SALES_LIMIT = 100
DEFAULT_TOP_PRODUCTS_LIMIT = 10


def _parse_day(value, field: str) -> date:
    try:
        day = parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)", details={field: value})
    if day is None:
        raise ValidationError(f"{field} is required", details={field: value})
    return day


def _resolve_window(start, end) -> tuple[datetime, datetime]:
    """Inclusive [start, end] business days as a UTC-naive half-open range."""
    start_day = _parse_day(start, "start")
    end_day = _parse_day(end, "end")
    if end_day < start_day:
        raise ValidationError(
            "end must not be before start",
            details={"start": start_day.isoformat(), "end": end_day.isoformat()},
        )
    return day_window_utc(start_day, end_day, current_app.config["BUSINESS_TIMEZONE"])


def _active_sales_in(query, window: tuple[datetime, datetime] | None):
    query = query.filter(Sale.is_void.is_(False))
    if window is not None:
        lower, upper = window
        query = query.filter(Sale.created_at >= lower, Sale.created_at < upper)
    return query


def sales_summary(start, end) -> dict:
    """
    Count, revenue, tax and average sale over active (non-void) sales.

    average_cents is 0 when there are no sales in the window.
    """
    window = _resolve_window(start, end)
    row = _active_sales_in(
        db.session.query(
            func.count(Sale.id).label("count"),
            func.coalesce(func.sum(Sale.total_cents), 0).label("revenue_cents"),
            func.coalesce(func.sum(Sale.tax_cents), 0).label("tax_cents"),
        ),
        window,
    ).one()

    count = int(row.count or 0)
    revenue = int(row.revenue_cents or 0)
    return {
        "count": count,
        "revenue_cents": revenue,
        "tax_cents": int(row.tax_cents or 0),
        "average_cents": round(revenue / count) if count else 0,
    }


def top_products(start=None, end=None, limit: int = DEFAULT_TOP_PRODUCTS_LIMIT) -> list[dict]:
    """
    Best sellers by revenue over active sales.

    Ordered by revenue desc, then quantity desc, then product id asc.
    start/end are optional; both must be given to restrict the window.
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("limit must be a positive integer", details={"limit": limit})

    window = None
    if start is not None or end is not None:
        window = _resolve_window(start, end)

    total_quantity = func.sum(SaleLine.quantity)
    total_revenue = func.sum(SaleLine.line_total_cents)

    query = (
        db.session.query(
            SaleLine.product_id.label("product_id"),
            Product.name.label("name"),
            Product.sku.label("sku"),
            total_quantity.label("total_quantity"),
            total_revenue.label("total_revenue_cents"),
            func.count(func.distinct(SaleLine.sale_id)).label("sale_count"),
        )
        .join(Sale, SaleLine.sale_id == Sale.id)
        .join(Product, SaleLine.product_id == Product.id)
    )
    rows = (
        _active_sales_in(query, window)
        .group_by(SaleLine.product_id, Product.name, Product.sku)
        .order_by(total_revenue.desc(), total_quantity.desc(), SaleLine.product_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "sku": row.sku,
            "total_quantity": int(row.total_quantity or 0),
            "total_revenue_cents": int(row.total_revenue_cents or 0),
            "sale_count": int(row.sale_count or 0),
        }
        for row in rows
    ]


def bucket_label(dt: datetime, granularity: str, tz_name: str) -> str:
    """
    Label for the bucket containing `dt` (UTC-naive) in the business timezone.

    day   -> 2026-03-01
    week  -> 2026-W09 (ISO-8601 week; the year is the ISO week-year, so
             2027-01-01 falls in 2026-W53)
    month -> 2026-03
    """
    local = to_business_time(dt, tz_name)
    if granularity == "day":
        return local.strftime("%Y-%m-%d")
    if granularity == "week":
        iso_year, iso_week, _ = local.isocalendar()
        return f"{iso_year:04d}-W{iso_week:02d}"
    if granularity == "month":
        return local.strftime("%Y-%m")
    raise ValidationError(
        "granularity must be day, week, or month",
        details={"granularity": granularity, "allowed": list(GRANULARITIES)},
    )


def revenue_trends(start, end, granularity: str = "day") -> list[dict]:
    """
    Active-sale revenue and count per day/week/month bucket.

    SPARSE RESULT: buckets with no sales are omitted, not zero-filled.
    Callers that chart a continuous axis must fill the gaps themselves.
    Buckets are returned in chronological order.
    """
    if granularity not in GRANULARITIES:
        raise ValidationError(
            "granularity must be day, week, or month",
            details={"granularity": granularity, "allowed": list(GRANULARITIES)},
        )
    window = _resolve_window(start, end)
    tz_name = current_app.config["BUSINESS_TIMEZONE"]

    rows = _active_sales_in(
        db.session.query(Sale.created_at, Sale.total_cents),
        window,
    ).order_by(Sale.created_at.asc()).all()

    buckets: dict[str, dict] = {}
    for row in rows:
        label = bucket_label(row.created_at, granularity, tz_name)
        bucket = buckets.setdefault(label, {"bucket": label, "revenue_cents": 0, "count": 0})
        bucket["revenue_cents"] += int(row.total_cents)
        bucket["count"] += 1

    # Labels are zero-padded, so lexical order is chronological
    return [buckets[label] for label in sorted(buckets)]


def sales_report(start, end) -> dict:
    """Summary, per-day breakdown and the most recent active sales in the window."""
    window = _resolve_window(start, end)
    recent = (
        _active_sales_in(db.session.query(Sale), window)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(RECENT_SALES_LIMIT)
        .all()
    )
    return {
        "period": {
            "start": _parse_day(start, "start").isoformat(),
            "end": _parse_day(end, "end").isoformat(),
        },
        "summary": sales_summary(start, end),
        "sales_by_date": revenue_trends(start, end, "day"),
        "sales": [s.to_dict(include_lines=False) for s in recent],
    }


def inventory_report() -> dict:
    """Stock value, low/out-of-stock lists and per-category totals for active products."""
    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.category.asc(), Product.name.asc())
        .all()
    )

    by_category: dict[str, dict] = {}
    for product in products:
        category = product.category or "Uncategorized"
        entry = by_category.setdefault(category, {"count": 0, "total_value_cents": 0})
        entry["count"] += 1
        entry["total_value_cents"] += product.price_cents * product.stock_quantity

    low_stock = [p for p in products if p.is_low_stock]
    out_of_stock = [p for p in products if p.stock_quantity == 0]

    return {
        "summary": {
            "total_products": len(products),
            "total_stock_value_cents": sum(p.price_cents * p.stock_quantity for p in products),
            "low_stock_count": len(low_stock),
            "out_of_stock_count": len(out_of_stock),
        },
        "by_category": by_category,
        "low_stock_products": [
            {
                "id": p.id,
                "name": p.name,
                "stock_quantity": p.stock_quantity,
                "low_stock_threshold": p.low_stock_threshold,
                "supplier_id": p.supplier_id,
            }
            for p in low_stock
        ],
        "out_of_stock_products": [
            {"id": p.id, "name": p.name, "supplier_id": p.supplier_id}
            for p in out_of_stock
        ],
    }
