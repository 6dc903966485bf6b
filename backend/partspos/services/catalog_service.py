# backend/partspos/services/catalog_service.py
"""
Catalog Service: products and categories.

Products and categories are never hard-deleted; they are deactivated so that
historical sale lines keep resolving. Inactive products are invisible to
lookups and cannot be sold.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_int, page_params, pagination
from .inventory_service import list_low_stock
from .settings_service import get_settings

PRODUCT_MUTABLE_FIELDS = {
    "barcode",
    "name",
    "description",
    "price_cents",
    "stock",
    "category_id",
    "manufacturer",
    "part_number",
    "is_active",
}
CATEGORY_MUTABLE_FIELDS = {"name", "description", "is_active"}


def _apply_patch(obj, patch: dict, fields: set[str]) -> None:
    for k, v in patch.items():
        if k not in fields:
            continue
        setattr(obj, k, v)


# -------------------------
# Categories
# -------------------------

def list_categories() -> list[Category]:
    return (
        db.session.query(Category)
        .filter(Category.is_active.is_(True))
        .order_by(Category.name.asc())
        .all()
    )


def get_category(category_id: int) -> Category | None:
    return db.session.query(Category).filter(Category.id == category_id).first()


def _category_name_taken(name: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Category.id).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    return q.first() is not None


def create_category(*, patch: dict, user_id: int | None = None) -> dict:
    name = patch.get("name")
    if not name:
        raise ValidationError("name is required")
    if _category_name_taken(name):
        raise ConflictError("Category with this name already exists")

    category = Category(created_by_user_id=user_id, updated_by_user_id=user_id)
    _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
    db.session.add(category)
    db.session.commit()

    current_app.logger.info("Category %s created (id=%s)", category.name, category.id)
    return category.to_dict()


def update_category(*, category_id: int, patch: dict, user_id: int | None = None) -> dict | None:
    category = get_category(category_id)
    if not category:
        return None

    if "name" in patch and patch["name"].lower() != category.name.lower():
        if _category_name_taken(patch["name"], exclude_id=category.id):
            raise ConflictError("Category with this name already exists")

    _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
    category.updated_by_user_id = user_id
    db.session.commit()
    return category.to_dict()


def delete_category(*, category_id: int, user_id: int | None = None) -> bool:
    """
    Soft-delete a category.

    Refused with ConflictError while any product (active or not) still points at it.
    """
    category = get_category(category_id)
    if not category:
        return False

    in_use = db.session.query(func.count(Product.id)).filter(Product.category_id == category.id).scalar() or 0
    if in_use:
        raise ConflictError(
            f"Cannot delete category. It is being used by {in_use} product(s).",
        )

    if category.is_active:
        category.is_active = False
        category.updated_by_user_id = user_id
    db.session.commit()

    current_app.logger.info("Category %s deactivated (id=%s)", category.name, category.id)
    return True


def _require_active_category(category_id: int | None) -> None:
    if category_id is None:
        return
    category = get_category(category_id)
    if not category or not category.is_active:
        raise ValidationError("Category not found")


# -------------------------
# Products
# -------------------------

def list_products(
    *,
    page=None,
    limit=None,
    category: str | None = None,
    search: str | None = None,
) -> dict:
    """
    Active products, newest first.

    Args:
        page: 1-indexed page (default 1)
        limit: items per page (default 10, max 100)
        category: exact category name (case-insensitive)
        search: substring matched against name, description, manufacturer, part number
    """
    page, limit = page_params(page, limit)

    q = db.session.query(Product).filter(Product.is_active.is_(True))

    if category:
        q = q.join(Category, Product.category_id == Category.id).filter(
            func.lower(Category.name) == category.strip().lower()
        )

    if search and search.strip():
        term = f"%{search.strip()}%"
        q = q.filter(or_(
            Product.name.ilike(term),
            Product.description.ilike(term),
            Product.manufacturer.ilike(term),
            Product.part_number.ilike(term),
        ))

    total = q.count()

    products = (
        q.order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "products": [p.to_dict() for p in products],
        "pagination": pagination(page, limit, total),
    }


def get_product(product_id: int) -> Product | None:
    return (
        db.session.query(Product)
        .filter(Product.id == product_id, Product.is_active.is_(True))
        .first()
    )


def get_product_by_barcode(barcode: str) -> Product:
    """Scanner lookup. Raises NotFoundError for unknown or inactive barcodes."""
    product = (
        db.session.query(Product)
        .filter(Product.barcode == barcode.strip(), Product.is_active.is_(True))
        .first()
    )
    if not product:
        raise NotFoundError("Product not found with this barcode")
    return product


def _barcode_taken(barcode: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Product.id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    return q.first() is not None


def create_product(*, patch: dict, user_id: int | None = None) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: barcode already exists (active or not)
        ValidationError: category missing or inactive
    """
    barcode = patch.get("barcode")
    if not barcode:
        raise ValidationError("barcode is required")
    if _barcode_taken(barcode):
        raise ConflictError("Product with this barcode already exists")

    _require_active_category(patch.get("category_id"))

    p = Product(created_by_user_id=user_id, updated_by_user_id=user_id)
    _apply_patch(p, patch, PRODUCT_MUTABLE_FIELDS)
    db.session.add(p)
    db.session.commit()

    current_app.logger.info("Product %s created (id=%s, stock=%s)", p.barcode, p.id, p.stock)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict, user_id: int | None = None) -> dict | None:
    p = db.session.query(Product).filter(Product.id == product_id).first()
    if not p:
        return None

    if "barcode" in patch and patch["barcode"] != p.barcode:
        if _barcode_taken(patch["barcode"], exclude_id=p.id):
            raise ConflictError("Product with this barcode already exists")

    if "category_id" in patch and patch["category_id"] != p.category_id:
        _require_active_category(patch["category_id"])

    _apply_patch(p, patch, PRODUCT_MUTABLE_FIELDS)
    p.updated_by_user_id = user_id
    db.session.commit()

    if "stock" in patch:
        current_app.logger.info("Product %s stock set to %s by user %s", p.barcode, p.stock, user_id)
    return p.to_dict()


def delete_product(*, product_id: int, user_id: int | None = None) -> bool:
    """Soft-delete only: preserve IDs and historical sale lines."""
    p = db.session.query(Product).filter(Product.id == product_id).first()
    if not p:
        return False

    if p.is_active:
        p.is_active = False
        p.updated_by_user_id = user_id
    db.session.commit()
    return True


def list_product_category_names() -> list[str]:
    """Distinct names of categories that active products are filed under."""
    rows = (
        db.session.query(Category.name)
        .join(Product, Product.category_id == Category.id)
        .filter(Product.is_active.is_(True), Category.is_active.is_(True))
        .distinct()
        .order_by(Category.name.asc())
        .all()
    )
    return [name for (name,) in rows]


def low_stock_products(threshold=None) -> dict:
    """Products at or below the threshold; defaults to the store setting."""
    if threshold in (None, ""):
        threshold = get_settings().low_stock_threshold
    else:
        threshold = coerce_int("threshold", threshold)
    if threshold < 0:
        raise ValidationError("threshold must be >= 0")

    products = list_low_stock(threshold)
    return {
        "threshold": threshold,
        "products": [p.to_dict() for p in products],
        "count": len(products),
    }
