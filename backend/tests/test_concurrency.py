# Overview: Pytest coverage for concurrent writers on a file-backed database.

"""
Concurrency tests

Two checkouts race for the last unit of a product. The write lock taken
before the stock read means exactly one sale commits and the other sees
the updated stock and fails with InsufficientStock.
"""

import threading

import pytest

from almacen import create_app
from almacen.errors import AlreadyResolved, InsufficientStock
from almacen.extensions import db
from almacen.models import Client, Movement, Product, Sale, Supplier, User
from almacen.services import ledger_service, purchase_service, sales_service
from almacen.services.auth_service import create_user
from almacen.services.session_service import build_context


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"timeout": 30, "check_same_thread": False}},
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _race(app, user_id, worker):
    """Run worker(ctx) twice in parallel threads; return the outcomes."""
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def _run():
        with app.app_context():
            ctx = build_context(db.session.get(User, user_id))
            barrier.wait()
            try:
                result = ("ok", worker(ctx))
            except (InsufficientStock, AlreadyResolved) as exc:
                result = (type(exc).__name__, None)
            finally:
                db.session.remove()
            with lock:
                outcomes.append(result)

    threads = [threading.Thread(target=_run) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return outcomes


def test_last_unit_is_sold_once(file_app):
    user = create_user("caja1", "caja1@almacen.local", "Password123!", rounds=4)
    client_row = Client(name="Consumidor Final")
    product = Product(code="ULTIMO", name="Ultima unidad", stock=1, price_cents=500)
    db.session.add_all([client_row, product])
    db.session.commit()
    user_id, client_id, product_id = user.id, client_row.id, product.id

    outcomes = _race(
        file_app, user_id,
        lambda ctx: sales_service.checkout(ctx, client_id, [(product_id, 1)]).id,
    )

    assert sorted(kind for kind, _ in outcomes) == ["InsufficientStock", "ok"]

    db.session.expire_all()
    assert db.session.get(Product, product_id).stock == 0
    assert db.session.query(Sale).count() == 1
    assert db.session.query(Movement).filter_by(product_id=product_id).count() == 1


def test_order_is_received_once(file_app):
    user = create_user("bodega1", "bodega1@almacen.local", "Password123!", rounds=4)
    supplier = Supplier(name="Proveedor Uno")
    product = Product(code="CAJA", name="Caja", stock=0, price_cents=100)
    db.session.add_all([supplier, product])
    db.session.commit()
    order = purchase_service.create_order(
        build_context(user), supplier.id, [{"product_id": product.id, "quantity": 12, "unit_cost_cents": 50}],
    )
    user_id, order_id, product_id = user.id, order.id, product.id

    outcomes = _race(
        file_app, user_id,
        lambda ctx: purchase_service.receive_order(ctx, order_id).id,
    )

    assert sorted(kind for kind, _ in outcomes) == ["AlreadyResolved", "ok"]

    db.session.expire_all()
    assert db.session.get(Product, product_id).stock == 12
    assert ledger_service.reconcile_product(product_id).consistent
