# Overview: Flask API routes for product categories.

from flask import Blueprint, request, g

from ..services import catalog_service
from ..models import Category
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_role

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "is_active"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_role("admin", "staff")
def list_categories():
    categories = catalog_service.list_categories()
    return {"categories": [c.to_dict() for c in categories], "count": len(categories)}, 200


@categories_bp.get("/<int:category_id>")
@require_auth
@require_role("admin", "staff")
def get_category(category_id: int):
    category = catalog_service.get_category(category_id)
    if not category:
        return {"error": "Category not found"}, 404
    return category.to_dict(), 200


@categories_bp.post("")
@require_auth
@require_role("admin")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        created = catalog_service.create_category(patch=patch, user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    return created, 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_role("admin")
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        updated = catalog_service.update_category(category_id=category_id, patch=patch, user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    if not updated:
        return {"error": "Category not found"}, 404
    return updated, 200


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_role("admin")
def delete_category_route(category_id: int):
    try:
        deleted = catalog_service.delete_category(category_id=category_id, user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409

    if not deleted:
        return {"error": "Category not found"}, 404
    return {"ok": True, "message": "Category deleted successfully"}, 200
