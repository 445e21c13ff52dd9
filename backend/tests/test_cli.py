# Overview: Pytest coverage for the flask CLI command groups.

from almacen.extensions import db
from almacen.models import Product, User


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    second = runner.invoke(args=["system", "init"])

    assert first.exit_code == 0, first.output
    assert "Created admin user" in first.output
    assert "Using existing admin user" in second.output
    assert db_session.query(User).filter_by(username="admin").count() == 1


def test_users_create_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--username", "debil", "--email", "debil@almacen.local", "--password", "short",
    ])

    assert result.exit_code != 0
    assert db_session.query(User).count() == 0


def test_ledger_reconcile_reports_and_repairs(app, db_session, make_product):
    product = make_product(stock=3, code="DRIFT")
    runner = app.test_cli_runner()

    report = runner.invoke(args=["ledger", "reconcile"])
    assert report.exit_code == 1
    assert "DRIFT" in report.output

    repaired = runner.invoke(args=["ledger", "reconcile", "--repair"])
    assert repaired.exit_code == 0, repaired.output

    db.session.expire_all()
    assert db_session.get(Product, product.id).stock == 0
    assert runner.invoke(args=["ledger", "reconcile"]).exit_code == 0
