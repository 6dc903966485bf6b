"""
Sale workflow tests.

Verifies:
- Totals: subtotal = sum(unit price x quantity), total = subtotal + tax - discount
- Stock drops by exactly the quantity sold
- Rejected carts leave no sale and no stock change
- Prices are frozen into sale lines
- Whole-transaction rollback on write-time failures
- Sale listing with pagination and date range
"""

import re
from datetime import datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

from partspos.extensions import db
from partspos.models import Sale, SaleLine, StoreSettings
from partspos.services import sales_service
from partspos.services.sale_number_service import SaleNumberError
from partspos.services.sales_service import (
    InsufficientStockError,
    ProductNotFoundError,
    SaleNotFoundError,
    SalePersistenceError,
    SaleValidationError,
    create_sale,
    get_sale,
    list_sales,
    price_sale,
    quote_sale,
    record_sale,
)
from partspos.validation import MAX_AMOUNT_CENTS, MAX_STOCK


SALE_NUMBER = re.compile(r"^SALE-(\d{6}|\d{9}-\d{3})$")


def _cart(*items, payment_method="cash", **extra):
    return {"items": list(items), "payment_method": payment_method, **extra}


def _sale_count() -> int:
    return db.session.query(Sale).count()


# =============================================================================
# TOTALS AND STOCK
# =============================================================================


class TestSuccessfulSale:

    def test_reference_cart_totals_and_stock(self, staff_user, product_a, product_b):
        sale = create_sale(_cart(
            {"product_id": product_a.id, "quantity": 2},
            {"product_id": product_b.id, "quantity": 1},
            tax=5.40,
            discount=0,
        ), staff_user.id)

        assert sale.subtotal_cents == 6748
        assert sale.tax_cents == 540
        assert sale.discount_cents == 0
        assert sale.total_cents == 7288
        assert product_a.stock == 8
        assert product_b.stock == 9

    def test_total_is_subtotal_plus_tax_minus_discount(self, staff_user, product_a):
        sale = create_sale(_cart(
            {"product_id": product_a.id, "quantity": 3},
            tax_cents=624,
            discount_cents=500,
        ), staff_user.id)

        assert sale.subtotal_cents == 3 * 2599
        assert sale.total_cents == sale.subtotal_cents + 624 - 500

    def test_lines_keep_input_order_and_frozen_price(self, staff_user, product_a, product_b):
        sale = create_sale(_cart(
            {"product_id": product_b.id, "quantity": 1},
            {"product_id": product_a.id, "quantity": 2},
        ), staff_user.id)

        assert [line.product_id for line in sale.lines] == [product_b.id, product_a.id]
        assert [line.line_number for line in sale.lines] == [1, 2]
        assert sale.lines[1].unit_price_cents == 2599
        assert sale.lines[1].line_total_cents == 5198

    def test_later_price_change_does_not_rewrite_sale(self, staff_user, product_a):
        sale = create_sale(_cart({"product_id": product_a.id, "quantity": 1}), staff_user.id)

        product_a.price_cents = 9999
        db.session.commit()

        reloaded = get_sale(sale.id)
        assert reloaded.lines[0].unit_price_cents == 2599
        assert reloaded.subtotal_cents == 2599

    @pytest.mark.parametrize("ref", ["product_dict", "product_scalar"])
    def test_alternate_product_reference_forms(self, staff_user, product_a, ref):
        item = {"product": {"id": product_a.id}} if ref == "product_dict" else {"product": product_a.id}
        item["quantity"] = 1

        sale = create_sale(_cart(item), staff_user.id)
        assert sale.lines[0].product_id == product_a.id

    def test_defaults_and_optional_fields(self, staff_user, product_a):
        sale = create_sale(_cart(
            {"product_id": product_a.id, "quantity": 1},
            payment_method="card",
            customer={"name": "  Jo Driver ", "phone": "555-0100"},
            notes="  fits 2019 Civic ",
        ), staff_user.id)

        assert sale.payment_status == "completed"
        assert sale.payment_method == "card"
        assert sale.tax_cents == 0 and sale.discount_cents == 0
        assert sale.customer_name == "Jo Driver"
        assert sale.customer_email is None
        assert sale.notes == "fits 2019 Civic"
        assert sale.created_by_user_id == staff_user.id
        assert SALE_NUMBER.match(sale.sale_number)

    def test_round_trip_returns_identical_amounts(self, staff_user, product_a, product_b):
        sale = create_sale(_cart(
            {"product_id": product_a.id, "quantity": 2},
            {"product_id": product_b.id, "quantity": 1},
            tax="5.40",
        ), staff_user.id)
        created = sale.to_dict()

        db.session.expire_all()
        fetched = get_sale(sale.id).to_dict()

        for key in ("sale_number", "subtotal_cents", "tax_cents", "discount_cents", "total_cents", "items"):
            assert fetched[key] == created[key]
        assert fetched["items"][0]["product"] == {
            "id": product_a.id,
            "name": "Brake Pads - Front Set",
            "barcode": "1234567890123",
        }
        assert fetched["created_by"] == {"id": staff_user.id, "full_name": "Sam Staff"}

    def test_sale_numbers_are_sequential(self, staff_user, product_a):
        first = create_sale(_cart({"product_id": product_a.id, "quantity": 1}), staff_user.id)
        second = create_sale(_cart({"product_id": product_a.id, "quantity": 1}), staff_user.id)

        assert first.sale_number == "SALE-000001"
        assert second.sale_number == "SALE-000002"


# =============================================================================
# REJECTIONS: NO SALE, NO STOCK CHANGE
# =============================================================================


class TestRejectedSale:

    @pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5, None, True])
    def test_bad_quantity(self, staff_user, product_a, quantity):
        item = {"product_id": product_a.id}
        if quantity is not None:
            item["quantity"] = quantity

        with pytest.raises(SaleValidationError) as exc:
            create_sale(_cart(item), staff_user.id)

        assert exc.value.details["item_index"] == 1
        assert _sale_count() == 0
        assert product_a.stock == 10

    @pytest.mark.parametrize("ref", [10**20, "100000000000000000000", -(10**20)])
    def test_product_id_beyond_database_range(self, staff_user, product_a, ref):
        with pytest.raises(SaleValidationError) as exc:
            create_sale(_cart(
                {"product_id": product_a.id, "quantity": 1},
                {"product_id": ref, "quantity": 1},
            ), staff_user.id)

        assert exc.value.details["item_index"] == 2
        assert _sale_count() == 0
        assert product_a.stock == 10

    @pytest.mark.parametrize("quantity", [MAX_STOCK + 1, 10**20])
    def test_quantity_above_ceiling(self, staff_user, product_a, quantity):
        with pytest.raises(SaleValidationError) as exc:
            create_sale(_cart({"product_id": product_a.id, "quantity": quantity}), staff_user.id)

        assert exc.value.details["item_index"] == 1
        assert _sale_count() == 0

    @pytest.mark.parametrize("amounts", [
        {"tax": "1e30"},
        {"tax": 10_000_000},
        {"tax_cents": 10**20},
        {"discount": "99999999999999999999.99"},
        {"discount_cents": MAX_AMOUNT_CENTS + 1},
    ])
    def test_oversized_amounts_rejected(self, staff_user, product_a, amounts):
        with pytest.raises(SaleValidationError) as exc:
            create_sale(_cart({"product_id": product_a.id, "quantity": 1}, **amounts), staff_user.id)

        assert exc.value.details["field"] in ("tax", "discount")
        assert _sale_count() == 0
        assert product_a.stock == 10

    def test_missing_product_reference(self, staff_user, product_a):
        with pytest.raises(SaleValidationError) as exc:
            create_sale(_cart({"quantity": 1}), staff_user.id)
        assert "item 1" in str(exc.value)

    def test_unknown_product_identifies_item(self, staff_user, product_a):
        with pytest.raises(ProductNotFoundError) as exc:
            create_sale(_cart(
                {"product_id": product_a.id, "quantity": 1},
                {"product_id": 999999, "quantity": 1},
            ), staff_user.id)

        assert exc.value.details["item_index"] == 2
        assert str(exc.value) == "Product not found: 999999"
        assert _sale_count() == 0
        assert product_a.stock == 10

    def test_inactive_product_cannot_be_sold(self, staff_user, product_a):
        product_a.is_active = False
        db.session.commit()

        with pytest.raises(ProductNotFoundError):
            create_sale(_cart({"product_id": product_a.id, "quantity": 1}), staff_user.id)

    def test_insufficient_stock(self, staff_user, product_c):
        with pytest.raises(InsufficientStockError) as exc:
            create_sale(_cart({"product_id": product_c.id, "quantity": 5}), staff_user.id)

        assert exc.value.details["product"] == "Spark Plug"
        assert exc.value.details["available"] == 3
        assert exc.value.details["requested"] == 5
        assert "Available: 3, Requested: 5" in str(exc.value)
        assert product_c.stock == 3
        assert _sale_count() == 0

    def test_repeated_lines_count_against_the_same_stock(self, staff_user, product_c):
        with pytest.raises(InsufficientStockError) as exc:
            create_sale(_cart(
                {"product_id": product_c.id, "quantity": 2},
                {"product_id": product_c.id, "quantity": 2},
            ), staff_user.id)

        assert exc.value.details["item_index"] == 2
        assert exc.value.details["requested"] == 4
        assert product_c.stock == 3

    def test_exact_stock_can_be_sold(self, staff_user, product_c):
        create_sale(_cart({"product_id": product_c.id, "quantity": 3}), staff_user.id)
        assert product_c.stock == 0

    @pytest.mark.parametrize("items", [None, [], "nope"])
    def test_items_required(self, staff_user, items):
        with pytest.raises(SaleValidationError):
            create_sale({"items": items, "payment_method": "cash"}, staff_user.id)

    def test_payment_method_required(self, staff_user, product_a):
        with pytest.raises(SaleValidationError) as exc:
            create_sale({"items": [{"product_id": product_a.id, "quantity": 1}]}, staff_user.id)
        assert str(exc.value) == "Payment method is required"

    def test_unknown_payment_method(self, staff_user, product_a):
        with pytest.raises(SaleValidationError):
            create_sale(_cart({"product_id": product_a.id, "quantity": 1}, payment_method="bitcoin"), staff_user.id)

    def test_negative_total_rejected(self, staff_user, product_a):
        with pytest.raises(SaleValidationError):
            create_sale(_cart({"product_id": product_a.id, "quantity": 1}, discount_cents=5000), staff_user.id)
        assert product_a.stock == 10

    def test_negative_tax_rejected(self, staff_user, product_a):
        with pytest.raises(SaleValidationError):
            create_sale(_cart({"product_id": product_a.id, "quantity": 1}, tax=-1), staff_user.id)

    def test_non_object_payload(self, staff_user):
        with pytest.raises(SaleValidationError):
            create_sale(None, staff_user.id)


# =============================================================================
# WRITE-TIME FAILURES ROLL BACK EVERYTHING
# =============================================================================


class TestRecordSaleAtomicity:

    def test_last_unit_sold_twice_only_once(self, staff_user, admin_user, product_c):
        product_c.stock = 1
        db.session.commit()

        cart = _cart({"product_id": product_c.id, "quantity": 1})
        first = price_sale(cart)
        second = price_sale(cart)  # both carts saw one unit on hand

        record_sale(first, staff_user.id)
        with pytest.raises(InsufficientStockError) as exc:
            record_sale(second, admin_user.id)

        assert exc.value.details["available"] == 0
        assert _sale_count() == 1
        assert product_c.stock == 0

    def test_stock_gone_mid_sale_rolls_back_earlier_lines(self, staff_user, product_a, product_c):
        priced = price_sale(_cart(
            {"product_id": product_a.id, "quantity": 2},
            {"product_id": product_c.id, "quantity": 1},
        ))
        product_c.stock = 0
        db.session.commit()

        with pytest.raises(InsufficientStockError) as exc:
            record_sale(priced, staff_user.id)

        assert exc.value.details["item_index"] == 2
        assert _sale_count() == 0
        assert db.session.query(SaleLine).count() == 0
        assert product_a.stock == 10

    def test_datastore_failure_surfaces_as_persistence_error(self, staff_user, product_a, monkeypatch):
        def broken_decrement(product_id, quantity):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(sales_service, "decrement_stock", broken_decrement)

        with pytest.raises(SalePersistenceError) as exc:
            create_sale(_cart({"product_id": product_a.id, "quantity": 1}), staff_user.id)

        assert exc.value.status_code == 500
        assert _sale_count() == 0
        assert product_a.stock == 10

    def test_sale_number_exhaustion_surfaces_as_persistence_error(self, staff_user, product_a, monkeypatch):
        def exhausted():
            raise SaleNumberError("Could not generate a unique sale number")

        monkeypatch.setattr(sales_service, "next_sale_number", exhausted)

        with pytest.raises(SalePersistenceError) as exc:
            create_sale(_cart({"product_id": product_a.id, "quantity": 1}), staff_user.id)

        assert exc.value.status_code == 500
        assert exc.value.details == {"retryable": True}
        assert _sale_count() == 0
        assert product_a.stock == 10

    def test_sale_number_collision_on_insert_retries_with_fallback(self, staff_user, product_a, monkeypatch):
        existing = create_sale(_cart({"product_id": product_a.id, "quantity": 1}), staff_user.id)
        monkeypatch.setattr(sales_service, "next_sale_number", lambda: existing.sale_number)

        sale = create_sale(_cart({"product_id": product_a.id, "quantity": 1}), staff_user.id)

        assert re.match(r"^SALE-\d{9}-\d{3}$", sale.sale_number)
        assert _sale_count() == 2
        assert product_a.stock == 8


# =============================================================================
# QUOTES
# =============================================================================


class TestQuote:

    def test_quote_suggests_tax_and_writes_nothing(self, product_a, product_b):
        settings = StoreSettings(tax_rate_bps=825)
        db.session.add(settings)
        db.session.commit()

        quote = quote_sale(_cart(
            {"product_id": product_a.id, "quantity": 2},
            {"product_id": product_b.id, "quantity": 1},
        ))

        assert quote["subtotal_cents"] == 6748
        assert quote["suggested_tax_cents"] == 557
        assert quote["suggested_total_cents"] == 6748 + 557
        assert quote["total_cents"] == 6748
        assert _sale_count() == 0
        assert product_a.stock == 10

    def test_suggested_total_never_negative(self, product_a):
        # caller tax covers a discount larger than subtotal; the store rate is 0
        quote = quote_sale(_cart(
            {"product_id": product_a.id, "quantity": 1},
            tax_cents=1000,
            discount_cents=3599,
        ))

        assert quote["total_cents"] == 0
        assert quote["suggested_tax_cents"] == 0
        assert quote["suggested_total_cents"] == 0


# =============================================================================
# QUERIES
# =============================================================================


class TestListSales:

    def _make_sales(self, user, product, dates):
        sales = []
        for d in dates:
            sale = create_sale(_cart({"product_id": product.id, "quantity": 1}), user.id)
            sale.sale_date = d
            db.session.commit()
            sales.append(sale)
        return sales

    def test_newest_first_with_pagination(self, staff_user, product_a):
        self._make_sales(staff_user, product_a, [
            datetime(2024, 3, 1, 10, 0),
            datetime(2024, 3, 2, 10, 0),
            datetime(2024, 3, 3, 10, 0),
        ])

        page1 = list_sales(page=1, limit=2)
        assert [s.sale_date.day for s in page1["sales"]] == [3, 2]
        assert page1["pagination"] == {
            "page": 1,
            "limit": 2,
            "total": 3,
            "total_pages": 2,
            "has_next": True,
            "has_prev": False,
        }

        page2 = list_sales(page=2, limit=2)
        assert [s.sale_date.day for s in page2["sales"]] == [1]
        assert page2["pagination"]["has_prev"] is True
        assert page2["pagination"]["has_next"] is False

    def test_date_only_end_includes_whole_day(self, staff_user, product_a):
        self._make_sales(staff_user, product_a, [
            datetime(2024, 3, 30, 12, 0),
            datetime(2024, 3, 31, 23, 30),
            datetime(2024, 4, 1, 0, 30),
        ])

        result = list_sales(start_date="2024-03-31", end_date="2024-03-31")
        assert result["pagination"]["total"] == 1
        assert result["sales"][0].sale_date == datetime(2024, 3, 31, 23, 30)

    def test_limit_is_capped(self, db_session):
        assert list_sales(limit=1000)["pagination"]["limit"] == 100

    def test_bad_date_rejected(self, db_session):
        with pytest.raises(SaleValidationError):
            list_sales(start_date="last tuesday")

    @pytest.mark.parametrize("page", [10**20, "100000000000000000000", 1_000_001])
    def test_page_out_of_range_rejected(self, db_session, page):
        with pytest.raises(SaleValidationError):
            list_sales(page=page)

    def test_missing_sale(self, db_session):
        with pytest.raises(SaleNotFoundError) as exc:
            get_sale(12345)
        assert exc.value.status_code == 404
