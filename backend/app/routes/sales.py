# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/app/routes/sales.py
"""Sales API routes with role enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import SaleEngineError, ValidationError
from ..services import sales_service
from ..decorators import require_auth, require_role


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    List sales, newest first.

    Query params: start, end (YYYY-MM-DD, inclusive), cashier_id, page, limit,
    include_void (default true).
    """
    try:
        result = sales_service.list_sales(
            start=request.args.get("start"),
            end=request.args.get("end"),
            cashier_id=request.args.get("cashier_id", type=int),
            include_void=request.args.get("include_void", "true").lower() != "false",
            page=request.args.get("page", 1, type=int),
            limit=request.args.get("limit", 50, type=int),
        )
        return jsonify(result), 200

    except SaleEngineError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("")
@require_auth
@require_role("admin", "staff", "supplier")
def create_sale_route():
    """
    Create a completed sale from a cart.

    Body:
    {
      "items": [{"product_id": 1, "quantity": 2}],
      "payment_method": "cash" | "card" | "mobile" | "other",
      "customer_name": "...", "customer_email": "...", "customer_phone": "...",
      "discount_cents": 0
    }

    400 invalid input, 404 unknown product, 409 insufficient stock.
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")

        sale = sales_service.create_sale(
            data.get("items"),
            payment_method=data.get("payment_method"),
            actor_id=g.current_user.id,
            customer={
                "name": data.get("customer_name"),
                "email": data.get("customer_email"),
                "phone": data.get("customer_phone"),
            },
            discount_cents=data.get("discount_cents", 0),
        )
        sales_service.hydrate_sale(sale)
        return jsonify({"sale": sale.to_dict()}), 201

    except SaleEngineError as e:
        if e.status_code >= 500:
            current_app.logger.critical("Sale creation left stock in doubt: %s", e.details)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    """Get sale with hydrated lines."""
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200

    except SaleEngineError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.patch("/<int:sale_id>/void")
@require_auth
@require_role("admin", "staff")
def void_sale_route(sale_id: int):
    """
    Void a sale and restore its stock.

    404 unknown sale, 409 already voided (or outside the void window).
    """
    try:
        sale = sales_service.void_sale(sale_id, g.current_user.id)
        return jsonify({
            "sale": sale.to_dict(),
            "message": "Sale voided successfully. Stock quantities have been restored.",
        }), 200

    except SaleEngineError as e:
        if e.status_code >= 500:
            current_app.logger.critical("Sale void left stock in doubt: %s", e.details)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to void sale")
        return jsonify({"error": "Internal server error"}), 500
