# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/partspos/routes/sales.py
"""Sales API routes with role enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.sales_service import SaleError
from ..decorators import require_auth, require_role


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_error_response(e: SaleError):
    return jsonify({"error": str(e), "details": e.details}), e.status_code


@sales_bp.post("")
@require_auth
@require_role("admin", "staff")
def create_sale_route():
    """
    Record a completed sale and take its items out of stock.

    Body:
        items: [{product_id, quantity}, ...]
        payment_method: cash | card | bank_transfer | check
        tax / tax_cents, discount / discount_cents (optional)
        customer: {name, email, phone, address} (optional)
        notes (optional)
    """
    try:
        data = request.get_json(silent=True)
        sale = sales_service.create_sale(data, g.current_user.id)
        return jsonify({"sale": sale.to_dict(), "message": "Sale created successfully"}), 201

    except SaleError as e:
        return _sale_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/quote")
@require_auth
@require_role("admin", "staff")
def quote_sale_route():
    """Price a cart without recording it."""
    try:
        quote = sales_service.quote_sale(request.get_json(silent=True))
        return jsonify({"quote": quote}), 200

    except SaleError as e:
        return _sale_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to quote sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_role("admin")
def list_sales_route():
    """
    Query params: page, limit, start_date, end_date (ISO-8601; date-only
    end_date includes that whole day).
    """
    try:
        result = sales_service.list_sales(
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            start_date=request.args.get("start_date") or request.args.get("startDate"),
            end_date=request.args.get("end_date") or request.args.get("endDate"),
        )
    except SaleError as e:
        return _sale_error_response(e)

    return jsonify({
        "sales": [s.to_dict() for s in result["sales"]],
        "pagination": result["pagination"],
    }), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_role("admin")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except SaleError as e:
        return _sale_error_response(e)
    return jsonify({"sale": sale.to_dict()}), 200
