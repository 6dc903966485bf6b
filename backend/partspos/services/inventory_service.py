# Overview: Stock mutations and stock-level queries for products.

"""
Inventory invariants:
- Product.stock is an integer on-hand count and never goes negative.
- The only workflow that lowers stock is a completed sale.
- A decrement is a single conditional UPDATE (stock >= quantity). The matched
  row count, not an earlier read, decides whether the units were available,
  so concurrent sales cannot oversell.
"""

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Product


def decrement_stock(product_id: int, quantity: int) -> bool:
    """
    Take `quantity` units of a product, only if that many are on hand.

    Returns True when the row was updated, False when stock was insufficient
    (or the product vanished). Does not commit; the caller owns the transaction.
    """
    if quantity <= 0:
        raise ValueError("quantity must be > 0")

    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity, version_id=Product.version_id + 1)
        .execution_options(synchronize_session="fetch")
    )
    result = db.session.execute(stmt)
    return result.rowcount == 1


def get_stock(product_id: int) -> int | None:
    """Current on-hand count straight from the database (bypasses the identity map)."""
    return db.session.query(Product.stock).filter(Product.id == product_id).scalar()


def list_low_stock(threshold: int) -> list[Product]:
    """Active products at or below the threshold, emptiest first."""
    if threshold < 0:
        raise ValueError("threshold must be >= 0")
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.stock <= threshold)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )
