# Overview: Pytest coverage for POS checkout.

"""
Checkout tests

Verifies:
- A sale writes header, lines and one SALE_OUT movement per line
- Duplicate cart lines are merged before stock is checked
- Any short line aborts the whole sale; nothing is written
- Unknown or inactive references are rejected before any write
- A failed cash rollup refresh leaves the committed sale in place
"""

import pytest
from sqlalchemy.exc import OperationalError

from almacen.errors import ClientNotFound, InsufficientStock, ProductNotFound, Unauthenticated, ValidationError
from almacen.models import Movement, MovementKind, Product, Sale, SaleItem
from almacen.services import cash_service, ledger_service, sales_service
from almacen.services.session_service import build_context


class TestCheckout:

    def test_checkout_decrements_stock_and_writes_movements(self, db_session, ctx, customer, make_product):
        arroz = make_product(stock=10, price_cents=250, code="ARROZ")
        aceite = make_product(stock=4, price_cents=1200, code="ACEITE")

        sale = sales_service.checkout(ctx, customer.id, [
            {"product_id": arroz.id, "quantity": 3},
            {"product_id": aceite.id, "quantity": 1},
        ])

        assert sale.sale_number.startswith("VTA-")
        assert sale.total_cents == 3 * 250 + 1200
        assert sale.payment_method == "Efectivo"
        assert len(sale.items) == 2

        db_session.refresh(arroz)
        db_session.refresh(aceite)
        assert arroz.stock == 7
        assert aceite.stock == 3

        movements = db_session.query(Movement).filter_by(sale_id=sale.id).order_by(Movement.product_id).all()
        assert [(m.kind, m.quantity, m.document) for m in movements] == [
            ("SALE_OUT", 3, sale.sale_number),
            ("SALE_OUT", 1, sale.sale_number),
        ]
        assert movements[0].stock_before == 10
        assert movements[0].stock_after == 7
        assert movements[0].total_cents == 750

    def test_duplicate_lines_are_merged(self, db_session, ctx, customer, make_product):
        product = make_product(stock=5, price_cents=100)

        sale = sales_service.checkout(ctx, customer.id, [(product.id, 2), (product.id, 3)])

        assert len(sale.items) == 1
        assert sale.items[0].quantity == 5
        db_session.refresh(product)
        assert product.stock == 0

    def test_merged_lines_over_stock_are_rejected(self, db_session, ctx, customer, make_product):
        product = make_product(stock=4)

        with pytest.raises(InsufficientStock) as exc:
            sales_service.checkout(ctx, customer.id, [(product.id, 2), (product.id, 3)])

        assert exc.value.details == [{
            "product_id": product.id,
            "code": product.code,
            "requested": 5,
            "available": 4,
        }]

    def test_short_line_aborts_whole_sale(self, db_session, ctx, customer, make_product):
        plenty = make_product(stock=50)
        scarce = make_product(stock=1)
        empty = make_product(stock=0)

        with pytest.raises(InsufficientStock) as exc:
            sales_service.checkout(ctx, customer.id, [
                {"product_id": plenty.id, "quantity": 2},
                {"product_id": scarce.id, "quantity": 2},
                {"product_id": empty.id, "quantity": 1},
            ])

        # Every short line is reported, not just the first
        assert [d["product_id"] for d in exc.value.details] == [scarce.id, empty.id]
        assert exc.value.status_code == 409

        db_session.refresh(plenty)
        assert plenty.stock == 50
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(Movement).count() == 0

    def test_sale_numbers_are_sequential(self, db_session, ctx, customer, make_product):
        product = make_product(stock=10)

        first = sales_service.checkout(ctx, customer.id, [(product.id, 1)])
        second = sales_service.checkout(ctx, customer.id, [(product.id, 1)])

        assert int(first.sale_number.rsplit("-", 1)[1]) + 1 == int(second.sale_number.rsplit("-", 1)[1])

    def test_ledger_matches_stock_after_sales(self, db_session, ctx, customer, make_product):
        product = make_product(stock=0)
        ledger_service.post_stock_movement(
            product=product, kind=MovementKind.OPENING_IN, quantity=10, unit_price_cents=0, user_id=None,
        )
        db_session.commit()

        sales_service.checkout(ctx, customer.id, [(product.id, 4)])

        result = ledger_service.reconcile_product(product.id)
        assert result.stock == 6
        assert result.consistent

    def test_sale_stands_when_cash_rollup_fails(self, db_session, ctx, customer, make_product, monkeypatch):
        product = make_product(stock=5, price_cents=300)
        cash_service.open_session(ctx, 0)

        def _locked():
            raise OperationalError("UPDATE sesiones_caja", {}, Exception("database is locked"))

        monkeypatch.setattr(sales_service, "refresh_open_session_totals", _locked)

        sale = sales_service.checkout(ctx, customer.id, [(product.id, 2)])

        assert sale.total_cents == 600
        assert db_session.query(Sale).count() == 1
        assert db_session.get(Product, product.id).stock == 3

        monkeypatch.undo()
        assert cash_service.get_current_session(ctx).total_sales_cents == 600


class TestCheckoutRejections:

    def test_requires_user(self, db_session, customer, make_product):
        product = make_product(stock=5)
        with pytest.raises(Unauthenticated):
            sales_service.checkout(build_context(None), customer.id, [(product.id, 1)])

    def test_inactive_user_rejected(self, db_session, ctx, user, customer, make_product):
        product = make_product(stock=5)
        user.is_active = False
        db_session.commit()

        with pytest.raises(Unauthenticated):
            sales_service.checkout(ctx, customer.id, [(product.id, 1)])

    def test_empty_cart(self, db_session, ctx, customer):
        with pytest.raises(ValidationError):
            sales_service.checkout(ctx, customer.id, [])

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "abc", None])
    def test_bad_quantity(self, db_session, ctx, customer, make_product, quantity):
        product = make_product(stock=5)
        with pytest.raises(ValidationError):
            sales_service.checkout(ctx, customer.id, [{"product_id": product.id, "quantity": quantity}])

    def test_unknown_payment_method(self, db_session, ctx, customer, make_product):
        product = make_product(stock=5)
        with pytest.raises(ValidationError):
            sales_service.checkout(ctx, customer.id, [(product.id, 1)], payment_method="Cheque")

    def test_unknown_client(self, db_session, ctx, make_product):
        product = make_product(stock=5)
        with pytest.raises(ClientNotFound):
            sales_service.checkout(ctx, 9999, [(product.id, 1)])

    def test_unknown_product(self, db_session, ctx, customer, make_product):
        product = make_product(stock=5)
        with pytest.raises(ProductNotFound) as exc:
            sales_service.checkout(ctx, customer.id, [(product.id, 1), (9999, 1)])
        assert exc.value.details == {"product_ids": [9999]}

    def test_inactive_product(self, db_session, ctx, customer, make_product):
        product = make_product(stock=5, is_active=False)
        with pytest.raises(ProductNotFound):
            sales_service.checkout(ctx, customer.id, [(product.id, 1)])


class TestListSales:

    def test_filters_by_payment_method(self, db_session, ctx, customer, make_product):
        product = make_product(stock=10)
        sales_service.checkout(ctx, customer.id, [(product.id, 1)], payment_method="Efectivo")
        card = sales_service.checkout(ctx, customer.id, [(product.id, 1)], payment_method="Tarjeta")

        rows, total = sales_service.list_sales(payment_method="Tarjeta")

        assert total == 1
        assert rows[0].id == card.id
