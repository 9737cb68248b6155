# Overview: Transaction helpers for writers; no retries, failures surface immediately.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import LedgerIntegrityError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Open the current session transaction as a writer.

    SQLite has no row locks, so the transaction takes the database write
    lock up front with BEGIN IMMEDIATE. Calling this inside an already
    open transaction is a no-op.
    """
    conn = db.session.connection()
    if conn.dialect.name != "sqlite":
        return
    if not conn.connection.dbapi_connection.in_transaction:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def rollback_after_failure(operation: str, **context) -> None:
    """
    Roll back the session after a failed write.

    A rollback that itself fails means partial stock changes may have
    reached the database, so it is escalated as LedgerIntegrityError
    instead of the original error.
    """
    try:
        db.session.rollback()
    except SQLAlchemyError as exc:
        current_app.logger.critical(
            "Rollback failed during %s; stock may be inconsistent (%s)",
            operation,
            context,
        )
        raise LedgerIntegrityError(
            f"Rollback failed during {operation}; stock may be inconsistent",
            details={"operation": operation, **context},
        ) from exc
