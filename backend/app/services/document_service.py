# Overview: Sale numbering; allocates SALE-<YYYYMMDD>-<NNNN> from a persisted per-day counter.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DailyCounter
from app.time_utils import business_day, utcnow
from .concurrency import begin_write


SALE_NUMBER_PREFIX = "SALE"
SALE_NUMBER_PAD = 4


def format_sale_number(day_key: str, sequence: int) -> str:
    return f"{SALE_NUMBER_PREFIX}-{day_key}-{sequence:0{SALE_NUMBER_PAD}d}"


def business_day_key(at: datetime | None = None) -> str:
    """YYYYMMDD of `at` (UTC-naive, default now) in the configured business timezone."""
    day = business_day(at or utcnow(), current_app.config["BUSINESS_TIMEZONE"])
    return day.strftime("%Y%m%d")


def _increment(day_key: str) -> int | None:
    stmt = (
        update(DailyCounter)
        .where(DailyCounter.business_day == day_key)
        .values(last_value=DailyCounter.last_value + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    return (
        db.session.query(DailyCounter.last_value)
        .filter_by(business_day=day_key)
        .scalar()
    )


def next_sequence(day_key: str) -> int:
    """
    Atomically allocate the next sequence value for a business day.

    Increment-then-read inside the caller's write transaction; the counter
    row is created on the first sale of the day. Participates in the
    caller's transaction and never commits.
    """
    begin_write()

    value = _increment(day_key)
    if value is not None:
        return value

    savepoint = db.session.begin_nested()
    try:
        db.session.add(DailyCounter(business_day=day_key, last_value=1))
        db.session.flush()
    except IntegrityError:
        # Another writer created the row first
        savepoint.rollback()
        value = _increment(day_key)
        if value is None:
            raise
        return value
    savepoint.commit()
    return 1


def next_sale_number(at: datetime | None = None) -> str:
    """Allocate the next sale number for the business day containing `at`."""
    day_key = business_day_key(at)
    return format_sale_number(day_key, next_sequence(day_key))


def peek_counter(day_key: str) -> int:
    """Last allocated value for a day (0 when nothing was sold)."""
    value = (
        db.session.query(DailyCounter.last_value)
        .filter_by(business_day=day_key)
        .scalar()
    )
    return int(value or 0)
