# Overview: Pytest coverage for dashboard and reports.

from datetime import datetime, timedelta

import pytest

from almacen.errors import ValidationError
from almacen.services import adjustment_service, purchase_service, reporting_service, sales_service
from almacen.time_utils import utcnow


class TestDashboard:

    def test_headline_numbers(self, db_session, ctx, customer, supplier, make_product):
        low = make_product(stock=3, min_stock=5, price_cents=100)
        make_product(stock=0, price_cents=100)
        make_product(stock=20, price_cents=50)
        sales_service.checkout(ctx, customer.id, [(low.id, 1)])
        purchase_service.create_order(ctx, supplier.id, [{"product_id": low.id, "quantity": 5, "unit_cost_cents": 60}])
        adjustment_service.propose_adjustment(ctx, low.id, 1, "Merma")

        summary = reporting_service.dashboard_summary()

        assert summary["products_active"] == 3
        assert summary["products_low_stock"] == 1
        assert summary["products_out_of_stock"] == 1
        assert summary["inventory_value_cents"] == 2 * 100 + 20 * 50
        assert summary["sales_today_count"] == 1
        assert summary["sales_today_total_cents"] == 100
        assert summary["pending_purchase_orders"] == 1
        assert summary["pending_adjustments"] == 1
        assert summary["open_cash_session_id"] is None


class TestInventoryReport:

    def test_valuation(self, db_session, make_product):
        make_product(stock=4, price_cents=100, cost_cents=70)
        make_product(stock=2, price_cents=300, cost_cents=None)

        report = reporting_service.inventory_report()

        assert report["total_units"] == 6
        assert report["total_value_cents"] == 4 * 100 + 2 * 300
        # Products without cost are left out of the cost valuation
        assert report["total_cost_value_cents"] == 4 * 70
        assert report["by_status"]["Activo"] == 2


class TestSalesReport:

    def test_totals_and_top_products(self, db_session, ctx, customer, make_product):
        fast = make_product(stock=50, price_cents=100)
        slow = make_product(stock=50, price_cents=1000)
        sales_service.checkout(ctx, customer.id, [(fast.id, 5), (slow.id, 1)])
        sales_service.checkout(ctx, customer.id, [(fast.id, 3)], payment_method="Tarjeta")

        report = reporting_service.sales_report(top=1)

        assert report["sales_count"] == 2
        assert report["total_cents"] == 1500 + 300
        assert report["average_ticket_cents"] == 900
        assert [p["product_id"] for p in report["top_products"]] == [fast.id]
        assert report["top_products"][0]["units"] == 8
        methods = {m["payment_method"]: m["total_cents"] for m in report["by_payment_method"]}
        assert methods == {"Efectivo": 1500, "Tarjeta": 300}
        assert len(report["by_day"]) == 1

    def test_range_excludes_outside(self, db_session, ctx, customer, make_product):
        product = make_product(stock=5)
        sales_service.checkout(ctx, customer.id, [(product.id, 1)])

        future = utcnow() + timedelta(days=1)
        report = reporting_service.sales_report(start=future, end=future + timedelta(days=1))
        assert report["sales_count"] == 0

    def test_inverted_range(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.sales_report(start=datetime(2026, 2, 1), end=datetime(2026, 1, 1))


class TestPurchaseReport:

    def test_by_status_and_supplier(self, db_session, ctx, supplier, make_product):
        product = make_product()
        first = purchase_service.create_order(
            ctx, supplier.id, [{"product_id": product.id, "quantity": 2, "unit_cost_cents": 100}]
        )
        purchase_service.create_order(
            ctx, supplier.id, [{"product_id": product.id, "quantity": 1, "unit_cost_cents": 100}]
        )
        purchase_service.receive_order(ctx, first.id)

        report = reporting_service.purchase_report()

        assert report["order_count"] == 2
        assert report["by_status"]["Recibido"] == {"count": 1, "total_cents": 200}
        assert report["by_status"]["Pendiente"] == {"count": 1, "total_cents": 100}
        assert report["by_supplier"][0]["supplier_name"] == supplier.name
