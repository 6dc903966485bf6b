# Overview: Flask API routes for products; parses input and returns JSON responses.

# backend/partspos/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Reads and barcode lookups: admin or staff
- Writes: admin only
"""
from flask import Blueprint, request, g

from ..services import catalog_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_role

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "barcode",
        "name",
        "description",
        "price_cents",
        "stock",
        "category_id",
        "manufacturer",
        "part_number",
        "is_active",
    },
    required_on_create={"barcode", "name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_role("admin", "staff")
def list_products():
    """
    Query params:
    - page: int (default 1)
    - limit: int (default 10, max 100)
    - category: category name
    - search: free text over name, description, manufacturer, part number
    """
    try:
        return catalog_service.list_products(
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            category=request.args.get("category"),
            search=request.args.get("search"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@products_bp.get("/barcode/<string:barcode>")
@require_auth
@require_role("admin", "staff")
def get_product_by_barcode(barcode: str):
    try:
        product = catalog_service.get_product_by_barcode(barcode)
    except NotFoundError as e:
        return {"error": str(e), "details": {"barcode": barcode}}, 404
    return product.to_dict(), 200


@products_bp.get("/categories/list")
@require_auth
@require_role("admin", "staff")
def list_product_categories():
    return {"categories": catalog_service.list_product_category_names()}, 200


@products_bp.get("/low-stock")
@require_auth
@require_role("admin", "staff")
def list_low_stock():
    try:
        return catalog_service.low_stock_products(request.args.get("threshold")), 200
    except ValidationError as e:
        return {"error": str(e)}, 400


@products_bp.get("/<int:product_id>")
@require_auth
@require_role("admin", "staff")
def get_product(product_id: int):
    product = catalog_service.get_product(product_id)
    if not product:
        return {"error": "Product not found"}, 404
    return product.to_dict(), 200


@products_bp.post("")
@require_auth
@require_role("admin")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = catalog_service.create_product(patch=patch, user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role("admin")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = catalog_service.update_product(product_id=product_id, patch=patch, user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    if not updated:
        return {"error": "Product not found"}, 404

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    """Soft delete: the product disappears from lookups, its sale history stays."""
    deleted = catalog_service.delete_product(product_id=product_id, user_id=g.current_user.id)
    if not deleted:
        return {"error": "Product not found"}, 404

    return {"ok": True, "message": "Product deleted successfully"}, 200
