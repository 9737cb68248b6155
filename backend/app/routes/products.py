# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/app/routes/products.py
"""
Product management routes.

Read operations require an authenticated user; writes require admin.
Stock is not writable here after creation (see /api/inventory).
"""
from flask import Blueprint, request

from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
)
from ..errors import SaleEngineError
from ..services import products_service
from ..decorators import require_auth, require_role

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category", "price_cents",
        "stock_quantity", "low_stock_threshold", "is_active", "supplier_id",
    },
    required_on_create={"name", "price_cents", "supplier_id"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"stock_quantity"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products.

    Query params:
    - category: str (optional)
    - supplier_id: int (optional)
    - include_inactive: bool (optional, default false)
    """
    return products_service.list_products(
        category=request.args.get("category"),
        supplier_id=request.args.get("supplier_id", type=int),
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
    )


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        return {"product": products_service.get_product(product_id).to_dict()}, 200
    except SaleEngineError as e:
        return e.to_dict(), e.status_code


@products_bp.post("")
@require_auth
@require_role("admin")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch=patch)
    except SaleEngineError as e:
        return e.to_dict(), e.status_code

    return {"product": created.to_dict()}, 201


@products_bp.patch("/<int:product_id>")
@require_auth
@require_role("admin")
def update_product_route(product_id: int):
    """Partial update. Price changes apply to future sales only."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id, patch=patch)
    except SaleEngineError as e:
        return e.to_dict(), e.status_code

    return {"product": updated.to_dict()}, 200
