# Overview: Pytest coverage for purchase orders and receipt.

import pytest

from almacen.errors import AlreadyResolved, OrderNotFound, ProductNotFound, SupplierNotFound, ValidationError
from almacen.models import Movement
from almacen.services import ledger_service, purchase_service


def _order(ctx, supplier, *lines, tax_cents=0):
    return purchase_service.create_order(
        ctx,
        supplier.id,
        [{"product_id": p.id, "quantity": q, "unit_cost_cents": c} for p, q, c in lines],
        tax_cents=tax_cents,
    )


class TestCreateOrder:

    def test_totals_and_numbering(self, db_session, ctx, supplier, make_product):
        harina = make_product()
        azucar = make_product()

        order = _order(ctx, supplier, (harina, 10, 300), (azucar, 5, 450), tax_cents=540)

        assert order.order_number.startswith("COMP-")
        assert order.status == "Pendiente"
        assert order.subtotal_cents == 10 * 300 + 5 * 450
        assert order.total_cents == order.subtotal_cents + 540
        assert len(order.items) == 2

    def test_creating_order_does_not_move_stock(self, db_session, ctx, supplier, make_product):
        product = make_product(stock=3)
        _order(ctx, supplier, (product, 10, 100))

        db_session.refresh(product)
        assert product.stock == 3
        assert db_session.query(Movement).count() == 0

    def test_unknown_supplier(self, db_session, ctx, make_product):
        product = make_product()
        with pytest.raises(SupplierNotFound):
            purchase_service.create_order(ctx, 9999, [{"product_id": product.id, "quantity": 1, "unit_cost_cents": 1}])

    def test_unknown_product(self, db_session, ctx, supplier):
        with pytest.raises(ProductNotFound):
            purchase_service.create_order(ctx, supplier.id, [{"product_id": 9999, "quantity": 1, "unit_cost_cents": 1}])

    @pytest.mark.parametrize("item", [
        {"quantity": 0, "unit_cost_cents": 100},
        {"quantity": 2, "unit_cost_cents": -1},
        {"quantity": "2", "unit_cost_cents": 100},
    ])
    def test_bad_items(self, db_session, ctx, supplier, make_product, item):
        product = make_product()
        with pytest.raises(ValidationError):
            purchase_service.create_order(ctx, supplier.id, [dict(item, product_id=product.id)])

    def test_empty_order(self, db_session, ctx, supplier):
        with pytest.raises(ValidationError):
            purchase_service.create_order(ctx, supplier.id, [])


class TestReceiveOrder:

    def test_receive_increments_stock_once_per_line(self, db_session, ctx, supplier, make_product):
        product = make_product(stock=2)
        order = _order(ctx, supplier, (product, 10, 300))

        received = purchase_service.receive_order(ctx, order.id)

        assert received.status == "Recibido"
        assert received.received_at is not None
        db_session.refresh(product)
        assert product.stock == 12

        movements = db_session.query(Movement).filter_by(purchase_order_id=order.id).all()
        assert len(movements) == 1
        assert movements[0].kind == "PURCHASE_IN"
        assert movements[0].quantity == 10
        assert movements[0].unit_price_cents == 300
        assert movements[0].document == order.order_number

    def test_second_receive_changes_nothing(self, db_session, ctx, supplier, make_product):
        product = make_product(stock=0)
        order = _order(ctx, supplier, (product, 4, 100))
        purchase_service.receive_order(ctx, order.id)

        with pytest.raises(AlreadyResolved) as exc:
            purchase_service.receive_order(ctx, order.id)

        assert exc.value.details == {"status": "Recibido"}
        assert "warning" in exc.value.to_dict()
        db_session.refresh(product)
        assert product.stock == 4
        assert db_session.query(Movement).filter_by(purchase_order_id=order.id).count() == 1

    def test_receive_unknown_order(self, db_session, ctx):
        with pytest.raises(OrderNotFound):
            purchase_service.receive_order(ctx, 9999)

    def test_ledger_consistent_after_receipt(self, db_session, ctx, supplier, make_product):
        product = make_product(stock=0)
        purchase_service.receive_order(ctx, _order(ctx, supplier, (product, 7, 100)).id)

        assert ledger_service.reconcile_product(product.id).consistent


class TestListOrders:

    def test_filter_by_status(self, db_session, ctx, supplier, make_product):
        product = make_product()
        pending = _order(ctx, supplier, (product, 1, 100))
        received = _order(ctx, supplier, (product, 1, 100))
        purchase_service.receive_order(ctx, received.id)

        rows, total = purchase_service.list_orders(status="Pendiente")
        assert total == 1
        assert rows[0].id == pending.id

    def test_unknown_status(self, db_session):
        with pytest.raises(ValidationError):
            purchase_service.list_orders(status="Cancelado")
