from __future__ import annotations

from ..extensions import db
from partspos.time_utils import to_utc_z


class Category(db.Model):
    """
    Named grouping of products (Brake System, Filters, ...).

    Names are unique case-insensitively; the service layer enforces this
    because SQLite has no portable functional unique index.

    Categories referenced by products are never removed, only deactivated.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.Index("ix_categories_name_active", "name", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    updated_by = db.relationship("User", foreign_keys=[updated_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "updated_by": self.updated_by.to_summary() if self.updated_by else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    A sellable part.

    BARCODE: globally unique, the scanner lookup key.

    STOCK: integer on-hand count, never negative (check constraint backs the
    conditional decrement in inventory_service). Completed sales are the only
    workflow that mutates it; administrators may correct it through an update.

    PRICE: authoritative storage in cents. Sale lines copy the price at sale
    time, so later price edits never rewrite history.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.CheckConstraint("stock >= 0", name="stock_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="price_non_negative"),
        db.Index("ix_products_active_created", "is_active", "created_at"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    barcode = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    manufacturer = db.Column(db.String(120), nullable=True)
    part_number = db.Column(db.String(64), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} barcode={self.barcode!r} stock={self.stock}>"

    def to_summary(self) -> dict:
        """Display-friendly reference used inside sale lines."""
        return {"id": self.id, "name": self.name, "barcode": self.barcode}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "category_id": self.category_id,
            "category": self.category.to_summary() if self.category else None,
            "manufacturer": self.manufacturer,
            "part_number": self.part_number,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
