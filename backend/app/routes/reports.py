from flask import Blueprint, jsonify, request

from app.decorators import require_auth, require_role
from app.errors import SaleEngineError
from app.services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_auth
@require_role("admin")
def sales_summary():
    try:
        summary = reporting_service.sales_summary(
            request.args.get("start"),
            request.args.get("end"),
        )
        return jsonify(summary), 200
    except SaleEngineError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/top-products")
@require_auth
@require_role("admin")
def top_products():
    limit = request.args.get("limit", reporting_service.DEFAULT_TOP_PRODUCTS_LIMIT, type=int)
    try:
        rows = reporting_service.top_products(
            request.args.get("start"),
            request.args.get("end"),
            limit=limit,
        )
        return jsonify({"count": len(rows), "items": rows}), 200
    except SaleEngineError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/revenue-trends")
@require_auth
@require_role("admin")
def revenue_trends():
    """
    Revenue per bucket. The result is sparse: buckets without sales are
    left out rather than reported as zero.
    """
    granularity = request.args.get("granularity", request.args.get("group_by", "day"))
    try:
        rows = reporting_service.revenue_trends(
            request.args.get("start"),
            request.args.get("end"),
            granularity,
        )
        return jsonify({"granularity": granularity, "sparse": True, "items": rows}), 200
    except SaleEngineError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/sales")
@require_auth
@require_role("admin")
def sales_report():
    try:
        report = reporting_service.sales_report(
            request.args.get("start"),
            request.args.get("end"),
        )
        return jsonify(report), 200
    except SaleEngineError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/inventory")
@require_auth
@require_role("admin")
def inventory_report():
    return jsonify(reporting_service.inventory_report()), 200
