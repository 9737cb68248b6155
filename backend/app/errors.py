# Overview: Error taxonomy for the sale engine; every error carries structured context.

from __future__ import annotations


class SaleEngineError(Exception):
    """
    Base class for sale, stock and reporting errors.

    Routes render these with to_dict() and status_code, so every subclass
    must put enough context in `details` to build a precise message upstream.
    """
    status_code = 500
    code = "SALE_ENGINE_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


# ---------------------------------------------------------------------------
# 400: caller's fault, never mutates state
# ---------------------------------------------------------------------------

class ValidationError(SaleEngineError, ValueError):
    """400-level input problem."""
    status_code = 400
    code = "VALIDATION_ERROR"


class EmptyCartError(ValidationError):
    code = "EMPTY_CART"

    def __init__(self):
        super().__init__("Sale must contain at least one item")


class InvalidPaymentMethodError(ValidationError):
    code = "INVALID_PAYMENT_METHOD"

    def __init__(self, payment_method, allowed):
        super().__init__(
            f"Invalid payment method: {payment_method!r}",
            details={"payment_method": payment_method, "allowed": list(allowed)},
        )


# ---------------------------------------------------------------------------
# 404
# ---------------------------------------------------------------------------

class NotFoundError(SaleEngineError):
    status_code = 404
    code = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id):
        super().__init__(
            f"Product with ID {product_id} not found",
            details={"product_id": product_id},
        )
        self.product_id = product_id


class SaleNotFoundError(NotFoundError):
    code = "SALE_NOT_FOUND"

    def __init__(self, sale_id):
        super().__init__("Sale not found", details={"sale_id": sale_id})
        self.sale_id = sale_id


# ---------------------------------------------------------------------------
# 409: business rule conflict, raised only after compensation completed
# ---------------------------------------------------------------------------

class ConflictError(SaleEngineError, ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409
    code = "CONFLICT"


class InsufficientStockError(ConflictError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, available: int, requested: int, name: str | None = None):
        label = name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}. Available: {available}, Requested: {requested}",
            details={
                "product_id": product_id,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class AlreadyVoidError(ConflictError):
    code = "ALREADY_VOID"

    def __init__(self, sale_id: int):
        super().__init__("Sale is already voided", details={"sale_id": sale_id})
        self.sale_id = sale_id


class VoidWindowExpiredError(ConflictError):
    code = "VOID_WINDOW_EXPIRED"

    def __init__(self, sale_id: int, window_hours: int):
        super().__init__(
            f"Sale can only be voided within {window_hours} hours of creation",
            details={"sale_id": sale_id, "void_window_hours": window_hours},
        )


# ---------------------------------------------------------------------------
# 500: compensation failed, stock may be inconsistent
# ---------------------------------------------------------------------------

class LedgerIntegrityError(SaleEngineError):
    """
    A rollback/compensation step failed after a partial stock change.

    Never swallow this: it means an operator has to reconcile stock.
    """
    status_code = 500
    code = "LEDGER_INTEGRITY"
