# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import SaleEngineError, ValidationError
from ..extensions import db
from ..models import Supplier
from ..services import inventory_service, products_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def get_inventory():
    """Active products ordered by stock; ?low_stock=true keeps only low-stock rows."""
    low_stock_only = request.args.get("low_stock", "false").lower() == "true"
    return jsonify(inventory_service.inventory_status(low_stock_only=low_stock_only)), 200


@inventory_bp.get("/alerts")
@require_auth
def get_low_stock_alerts():
    products = inventory_service.low_stock_alerts()
    return jsonify({
        "count": len(products),
        "items": [p.to_dict() for p in products],
    }), 200


def _supplier_scope_denied(product):
    """403 response when a supplier user tries to restock another supplier's product."""
    user = g.current_user
    if user.role != "supplier":
        return None

    supplier = db.session.query(Supplier).filter_by(user_id=user.id).first()
    if supplier is None:
        return jsonify({"error": "Supplier record not found"}), 403
    if product.supplier_id != supplier.id:
        return jsonify({
            "error": "Permission denied",
            "message": "You can only update stock for your own products",
        }), 403
    return None


@inventory_bp.put("/<int:product_id>/stock")
@require_auth
@require_role("admin", "supplier")
def update_stock(product_id: int):
    """
    Manual stock correction.

    Body: {"quantity": int, "operation": "set" | "add"}

    Suppliers may only correct stock of products they supply.
    """
    try:
        product = products_service.get_product(product_id)
        denied = _supplier_scope_denied(product)
        if denied is not None:
            return denied

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        operation = data.get("operation", "set")

        product = inventory_service.adjust_stock(
            product_id,
            data.get("quantity"),
            operation=operation,
        )
        return jsonify({
            "product": product.to_dict(),
            "message": f"Stock {'updated' if operation == 'add' else 'set'} successfully",
        }), 200

    except SaleEngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update stock")
        return jsonify({"error": "Internal server error"}), 500
