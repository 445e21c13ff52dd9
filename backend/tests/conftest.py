"""
Pytest fixtures for almacen backend tests.

Provides an in-memory database, a signed-in user context, catalog
factories, and a test client with bearer-token helpers.
"""

import pytest

from almacen import create_app
from almacen.extensions import db
from almacen.models import Client, Product, Supplier
from almacen.services.auth_service import create_user
from almacen.services.session_service import build_context


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TX_RETRY_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def user(db_session):
    """Active operator; rounds=4 keeps bcrypt fast."""
    return create_user("operador", "operador@almacen.local", TEST_PASSWORD, full_name="Operador", rounds=4)


@pytest.fixture(scope='function')
def ctx(user):
    return build_context(user)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Insert a product directly. Stock set here bypasses the ledger on purpose."""
    counter = {"n": 0}

    def _make(stock=0, price_cents=1000, cost_cents=600, min_stock=0, **kwargs):
        counter["n"] += 1
        product = Product(
            code=kwargs.pop("code", f"P-{counter['n']:03d}"),
            name=kwargs.pop("name", f"Producto {counter['n']}"),
            stock=stock,
            min_stock=min_stock,
            price_cents=price_cents,
            cost_cents=cost_cents,
            **kwargs,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def customer(db_session):
    client_row = Client(name="Cliente Mostrador", document_number="0991234567001")
    db_session.add(client_row)
    db_session.commit()
    return client_row


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier_row = Supplier(name="Distribuidora Norte", tax_id="1790012345001")
    db_session.add(supplier_row)
    db_session.commit()
    return supplier_row


@pytest.fixture(scope='function')
def headers(client, user):
    """Authorization headers for the default user."""
    token = get_auth_token(client, user.username, TEST_PASSWORD)
    assert token
    return auth_headers(token)


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
