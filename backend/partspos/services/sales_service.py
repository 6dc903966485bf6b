# Overview: Sale workflow: cart validation and pricing, atomic persistence with stock decrement, sale queries.

"""
Sales Service - one-shot completed sales

WHY: A sale is priced, numbered, written and taken out of stock as a single
unit of work. Either all of it lands or none of it does.

Flow:
    price_sale(payload)          -> PricedSale   (reads only)
    record_sale(priced, user_id) -> Sale         (one transaction)
    create_sale(payload, user_id) = record_sale(price_sale(payload), user_id)

The stock check in price_sale gives the caller a precise early error. The
conditional decrement in record_sale is the one that counts: two carts that
both passed pricing for the last unit cannot both be recorded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Product, Sale, SaleLine
from ..models.sales import PAYMENT_METHODS
from ..validation import (
    DEFAULT_PAGE_SIZE,
    MAX_AMOUNT_CENTS,
    MAX_STOCK,
    ValidationError,
    amount_to_cents,
    coerce_int,
    page_params,
    pagination,
)
from partspos.time_utils import parse_date_range, utcnow
from .concurrency import RETRYABLE_ERRORS, run_with_retry
from .inventory_service import decrement_stock, get_stock
from .sale_number_service import SaleNumberError, fallback_sale_number, next_sale_number
from .settings_service import get_settings, suggested_tax_cents


CUSTOMER_FIELDS = ("name", "email", "phone", "address")


class SaleError(Exception):
    """Raised for sale operation errors."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleValidationError(SaleError):
    """Malformed cart: missing items, bad quantity, bad amounts, bad payment method."""


class ProductNotFoundError(SaleError):
    """A line references a product that does not exist or is inactive."""


class InsufficientStockError(SaleError):
    """Requested quantity exceeds what is on hand."""


class SalePersistenceError(SaleError):
    """The datastore refused the write. Nothing was committed."""
    status_code = 500


class SaleNotFoundError(SaleError):
    status_code = 404


@dataclass(frozen=True)
class PricedLine:
    line_number: int
    product_id: int
    product_name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int


@dataclass(frozen=True)
class PricedSale:
    """A validated cart with prices frozen at validation time. Nothing persisted yet."""
    lines: tuple[PricedLine, ...]
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int
    payment_method: str
    customer: dict = field(default_factory=dict)
    notes: str | None = None

    def to_dict(self) -> dict:
        return {
            "items": [
                {
                    "line_number": line.line_number,
                    "product": {"id": line.product_id, "name": line.product_name},
                    "quantity": line.quantity,
                    "unit_price_cents": line.unit_price_cents,
                    "line_total_cents": line.line_total_cents,
                }
                for line in self.lines
            ],
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
        }


# -------------------------
# Validation / pricing
# -------------------------

def _product_reference(item: dict) -> Any:
    """product_id, product: {id: ...} or product: <id>, in that order."""
    ref = item.get("product_id")
    if ref is None:
        product = item.get("product")
        if isinstance(product, dict):
            ref = product.get("id")
        else:
            ref = product
    return ref


def _read_amount(payload: dict, name: str) -> int:
    """
    Read an optional non-negative amount given either as `<name>_cents`
    (integer cents) or `<name>` (currency amount, e.g. 5.40).
    """
    try:
        if payload.get(f"{name}_cents") is not None:
            cents = coerce_int(f"{name}_cents", payload[f"{name}_cents"])
        elif payload.get(name) is not None:
            cents = amount_to_cents(name, payload[name])
        else:
            return 0
    except ValidationError as exc:
        raise SaleValidationError(str(exc), details={"field": name})

    if cents < 0:
        raise SaleValidationError(f"{name} cannot be negative", details={"field": name, "value_cents": cents})
    if cents > MAX_AMOUNT_CENTS:
        raise SaleValidationError(
            f"{name} cannot exceed {MAX_AMOUNT_CENTS} cents",
            details={"field": name, "value_cents": cents},
        )
    return cents


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _read_customer(raw: Any) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SaleValidationError("customer must be an object", details={"received": raw})
    return {key: _optional_text(raw.get(key)) for key in CUSTOMER_FIELDS}


def price_sale(payload: dict | None) -> PricedSale:
    """
    Validate a cart and compute its totals. Performs no writes.

    Items are checked in input order and the first bad one stops validation;
    error details carry its 1-based index.
    """
    if not isinstance(payload, dict):
        raise SaleValidationError("Invalid JSON payload")

    items = payload.get("items")
    if not items or not isinstance(items, list):
        raise SaleValidationError(
            "Items array is required and must contain at least one item",
            details={"received": {"items": items}},
        )

    payment_method = payload.get("payment_method")
    if not payment_method:
        raise SaleValidationError("Payment method is required", details={"received": {"payment_method": payment_method}})
    if payment_method not in PAYMENT_METHODS:
        raise SaleValidationError(
            f"Invalid payment method. Supported values: {', '.join(PAYMENT_METHODS)}",
            details={"received": {"payment_method": payment_method}},
        )

    lines: list[PricedLine] = []
    requested_by_product: dict[int, int] = {}
    subtotal = 0

    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise SaleValidationError(f"Item {index} must be an object", details={"item_index": index, "received": item})

        ref = _product_reference(item)
        if ref is None or ref == "":
            raise SaleValidationError(
                f"Product ID is required for item {index}",
                details={"item_index": index, "received": item},
            )
        try:
            product_id = coerce_int("product_id", ref)
        except ValidationError:
            raise SaleValidationError(
                f"Product ID is invalid for item {index}",
                details={"item_index": index, "received": item},
            )

        try:
            quantity = coerce_int("quantity", item.get("quantity")) if item.get("quantity") is not None else 0
        except ValidationError:
            quantity = 0
        if quantity <= 0:
            raise SaleValidationError(
                f"Valid quantity is required for item {index}",
                details={"item_index": index, "received": item},
            )
        if quantity > MAX_STOCK:
            raise SaleValidationError(
                f"Quantity for item {index} cannot exceed {MAX_STOCK}",
                details={"item_index": index, "received": item},
            )

        product = (
            db.session.query(Product)
            .filter(Product.id == product_id, Product.is_active.is_(True))
            .first()
        )
        if product is None:
            raise ProductNotFoundError(
                f"Product not found: {product_id}",
                details={"item_index": index, "product_id": product_id},
            )

        # Repeated lines for one product draw on the same stock
        requested = requested_by_product.get(product.id, 0) + quantity
        if product.stock < requested:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}. Available: {product.stock}, Requested: {requested}",
                details={
                    "item_index": index,
                    "product_id": product.id,
                    "product": product.name,
                    "available": product.stock,
                    "requested": requested,
                },
            )
        requested_by_product[product.id] = requested

        line_total = product.price_cents * quantity
        subtotal += line_total
        lines.append(PricedLine(
            line_number=index,
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price_cents=product.price_cents,
            line_total_cents=line_total,
        ))

    tax_cents = _read_amount(payload, "tax")
    discount_cents = _read_amount(payload, "discount")
    total_cents = subtotal + tax_cents - discount_cents
    if total_cents < 0:
        raise SaleValidationError(
            "Discount cannot exceed subtotal plus tax",
            details={
                "subtotal_cents": subtotal,
                "tax_cents": tax_cents,
                "discount_cents": discount_cents,
            },
        )

    return PricedSale(
        lines=tuple(lines),
        subtotal_cents=subtotal,
        tax_cents=tax_cents,
        discount_cents=discount_cents,
        total_cents=total_cents,
        payment_method=payment_method,
        customer=_read_customer(payload.get("customer")),
        notes=_optional_text(payload.get("notes")),
    )


# -------------------------
# Persistence
# -------------------------

def _is_sale_number_collision(exc: IntegrityError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return "sale_number" in message or "uq_sales_sale_number" in message


def _write_sale(priced: PricedSale, user_id: int, sale_number: str) -> Sale:
    sale = Sale(
        sale_number=sale_number,
        subtotal_cents=priced.subtotal_cents,
        tax_cents=priced.tax_cents,
        discount_cents=priced.discount_cents,
        total_cents=priced.total_cents,
        payment_method=priced.payment_method,
        payment_status="completed",
        customer_name=priced.customer.get("name"),
        customer_email=priced.customer.get("email"),
        customer_phone=priced.customer.get("phone"),
        customer_address=priced.customer.get("address"),
        notes=priced.notes,
        sale_date=utcnow(),
        created_by_user_id=user_id,
    )
    for line in priced.lines:
        sale.lines.append(SaleLine(
            line_number=line.line_number,
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            line_total_cents=line.line_total_cents,
        ))
    db.session.add(sale)
    db.session.flush()

    for line in priced.lines:
        if not decrement_stock(line.product_id, line.quantity):
            available = get_stock(line.product_id) or 0
            raise InsufficientStockError(
                f"Insufficient stock for {line.product_name}. Available: {available}, Requested: {line.quantity}",
                details={
                    "item_index": line.line_number,
                    "product_id": line.product_id,
                    "product": line.product_name,
                    "available": available,
                    "requested": line.quantity,
                },
            )
    return sale


def record_sale(priced: PricedSale, user_id: int) -> Sale:
    """
    Persist a priced sale and take its lines out of stock in one transaction.

    Order inside the transaction: allocate sale number, insert sale and lines,
    conditionally decrement each product. Any failure rolls back all of it.
    """
    def _op(use_fallback_number: bool = False) -> Sale:
        sale_number = fallback_sale_number() if use_fallback_number else next_sale_number()
        sale = _write_sale(priced, user_id, sale_number)
        db.session.commit()
        return sale

    def _op_with_collision_retry() -> Sale:
        try:
            return _op()
        except IntegrityError as exc:
            db.session.rollback()
            if not _is_sale_number_collision(exc):
                raise
            current_app.logger.warning("Sale number collision on insert, retrying with fallback number")
            return _op(use_fallback_number=True)

    summary = {
        "lines": len(priced.lines),
        "total_cents": priced.total_cents,
        "payment_method": priced.payment_method,
        "user_id": user_id,
    }

    try:
        sale = run_with_retry(_op_with_collision_retry)
    except SaleError as exc:
        db.session.rollback()
        current_app.logger.warning("Sale rejected at write time: %s %s", exc, exc.details)
        raise
    except SaleNumberError:
        db.session.rollback()
        current_app.logger.exception("Sale number allocation failed: %s", summary)
        raise SalePersistenceError("Could not allocate a sale number, please retry", details={"retryable": True})
    except RETRYABLE_ERRORS:
        db.session.rollback()
        current_app.logger.exception("Sale write failed after retries: %s", summary)
        raise SalePersistenceError("Could not save sale, please retry", details={"retryable": True})
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Sale write failed: %s", summary)
        raise SalePersistenceError("Could not save sale")
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Sale %s recorded: total_cents=%d lines=%d user_id=%s",
        sale.sale_number, sale.total_cents, len(priced.lines), user_id,
    )
    return sale


def create_sale(payload: dict | None, user_id: int) -> Sale:
    """Validate, price and record a sale."""
    try:
        priced = price_sale(payload)
    except SaleError as exc:
        current_app.logger.warning("Sale rejected: %s %s", exc, exc.details)
        raise
    return record_sale(priced, user_id)


def quote_sale(payload: dict | None) -> dict:
    """
    Price a cart without recording it. When the caller gives no tax, the
    quote carries the tax suggested by the store's tax rate.
    """
    priced = price_sale(payload)
    settings = get_settings()
    suggested = suggested_tax_cents(priced.subtotal_cents, settings)

    quote = priced.to_dict()
    quote["suggested_tax_cents"] = suggested
    quote["tax_rate_bps"] = settings.tax_rate_bps
    quote["suggested_total_cents"] = max(priced.subtotal_cents + suggested - priced.discount_cents, 0)
    return quote


# -------------------------
# Queries
# -------------------------

def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    page: Any = 1,
    limit: Any = DEFAULT_PAGE_SIZE,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    """
    Newest first. Both date bounds are inclusive; a date-only end_date covers
    that whole day.
    """
    try:
        page, limit = page_params(page, limit)
    except ValidationError as exc:
        raise SaleValidationError(str(exc))
    try:
        start_dt, end_dt = parse_date_range(start_date, end_date)
    except ValueError:
        raise SaleValidationError(
            "Invalid date filter, expected ISO-8601",
            details={"start_date": start_date, "end_date": end_date},
        )

    query = db.session.query(Sale)
    if start_dt is not None:
        query = query.filter(Sale.sale_date >= start_dt)
    if end_dt is not None:
        query = query.filter(Sale.sale_date <= end_dt)

    total = query.order_by(None).count()
    sales = (
        query.order_by(Sale.sale_date.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"sales": sales, "pagination": pagination(page, limit, total)}
