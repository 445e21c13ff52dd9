# Overview: Pytest coverage for the stock ledger and reconciliation.

from datetime import datetime

import pytest

from almacen.errors import InsufficientStock, ProductNotFound, ValidationError
from almacen.models import Movement, MovementKind
from almacen.services import ledger_service


def _post(db_session, product, kind, quantity, **kwargs):
    movement = ledger_service.post_stock_movement(
        product=product, kind=kind, quantity=quantity, unit_price_cents=kwargs.pop("unit_price_cents", 100),
        user_id=None, **kwargs,
    )
    db_session.commit()
    return movement


class TestPostStockMovement:

    def test_inbound_and_outbound(self, db_session, make_product):
        product = make_product(stock=0)

        inbound = _post(db_session, product, MovementKind.PURCHASE_IN, 8)
        outbound = _post(db_session, product, MovementKind.SALE_OUT, 3)

        assert (inbound.stock_before, inbound.stock_after) == (0, 8)
        assert (outbound.stock_before, outbound.stock_after) == (8, 5)
        assert inbound.movement_type == "Entrada"
        assert outbound.movement_type == "Salida"
        assert product.stock == 5
        assert ledger_service.ledger_balance(product.id) == 5

    def test_outbound_below_zero_is_rejected(self, db_session, make_product):
        product = make_product(stock=0)
        _post(db_session, product, MovementKind.OPENING_IN, 2)

        with pytest.raises(InsufficientStock) as exc:
            ledger_service.post_stock_movement(
                product=product, kind=MovementKind.ADJUSTMENT_OUT, quantity=3, unit_price_cents=0, user_id=None,
            )

        assert exc.value.details[0]["available"] == 2
        assert product.stock == 2

    @pytest.mark.parametrize("quantity", [0, -2, True])
    def test_quantity_must_be_positive(self, db_session, make_product, quantity):
        product = make_product(stock=5)
        with pytest.raises(ValidationError):
            ledger_service.post_stock_movement(
                product=product, kind=MovementKind.PURCHASE_IN, quantity=quantity, unit_price_cents=0, user_id=None,
            )

    def test_movements_are_append_only(self, db_session, make_product):
        product = make_product(stock=0)
        movement = _post(db_session, product, MovementKind.OPENING_IN, 2)

        movement.note = "edited"
        with pytest.raises(ValueError):
            db_session.commit()
        db_session.rollback()

        db_session.delete(db_session.get(Movement, movement.id))
        with pytest.raises(ValueError):
            db_session.commit()
        db_session.rollback()

        assert db_session.query(Movement).count() == 1


class TestReconcile:

    def test_consistent_product(self, db_session, make_product):
        product = make_product(stock=0)
        _post(db_session, product, MovementKind.OPENING_IN, 4)

        result = ledger_service.reconcile_product(product.id)
        assert result.consistent
        assert result.to_dict()["drift"] == 0

    def test_drift_is_reported_then_repaired(self, db_session, make_product):
        product = make_product(stock=0)
        _post(db_session, product, MovementKind.OPENING_IN, 4)
        # Simulate an out-of-band write to the stock column
        product.stock = 9
        db_session.commit()

        report = ledger_service.recompute_from_ledger(product.id)
        assert report.drift == 5
        assert not report.repaired
        db_session.refresh(product)
        assert product.stock == 9

        repaired = ledger_service.recompute_from_ledger(product.id, repair=True)
        assert repaired.repaired
        db_session.refresh(product)
        assert product.stock == 4
        # The repair itself does not add a movement
        assert db_session.query(Movement).count() == 1

    def test_repair_of_consistent_product_is_noop(self, db_session, make_product):
        product = make_product(stock=0)
        _post(db_session, product, MovementKind.OPENING_IN, 4)

        result = ledger_service.recompute_from_ledger(product.id, repair=True)
        assert result.consistent
        assert not result.repaired

    def test_reconcile_all_returns_only_drifted(self, db_session, make_product):
        clean = make_product(stock=0)
        _post(db_session, clean, MovementKind.OPENING_IN, 1)
        drifted = make_product(stock=3)

        results = ledger_service.reconcile_all()
        assert [r.product_id for r in results] == [drifted.id]

        ledger_service.reconcile_all(repair=True)
        db_session.refresh(drifted)
        assert drifted.stock == 0

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFound):
            ledger_service.reconcile_product(9999)


class TestListMovements:

    def test_filters(self, db_session, make_product):
        product = make_product(stock=0)
        other = make_product(stock=0)
        _post(db_session, product, MovementKind.PURCHASE_IN, 5, document="COMP-2026-001",
              occurred_at=datetime(2026, 3, 1, 10, 0))
        _post(db_session, product, MovementKind.SALE_OUT, 2, document="VTA-2026-0001",
              occurred_at=datetime(2026, 3, 2, 10, 0))
        _post(db_session, other, MovementKind.OPENING_IN, 1, occurred_at=datetime(2026, 3, 3, 10, 0))

        rows, total = ledger_service.list_movements(product_id=product.id)
        assert total == 2
        # Newest first
        assert [m.kind for m in rows] == ["SALE_OUT", "PURCHASE_IN"]

        rows, total = ledger_service.list_movements(movement_type="Entrada")
        assert total == 2

        rows, total = ledger_service.list_movements(document="VTA-2026-0001")
        assert [m.quantity for m in rows] == [2]

        rows, total = ledger_service.list_movements(
            start=datetime(2026, 3, 2), end=datetime(2026, 3, 2, 23, 59, 59),
        )
        assert total == 1

    def test_unknown_kind(self, db_session):
        with pytest.raises(ValidationError):
            ledger_service.list_movements(kind="GIFT_OUT")
