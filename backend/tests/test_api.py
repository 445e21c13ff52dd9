# Overview: Pytest coverage for the HTTP API surface.

"""
API tests

Verifies:
- Protected endpoints return 401 without a valid token
- Business errors map to their status codes with details
- Repeated resolutions return 409 with a warning and change nothing
"""

import pytest

from conftest import TEST_PASSWORD, auth_headers, get_auth_token


# =============================================================================
# AUTHENTICATION
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/clients"),
            ("GET", "/api/suppliers"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales"),
            ("GET", "/api/purchase-orders"),
            ("POST", "/api/purchase-orders/1/receive"),
            ("GET", "/api/adjustments"),
            ("POST", "/api/adjustments/1/approve"),
            ("GET", "/api/inventory/movements"),
            ("GET", "/api/cash/sessions/current"),
            ("POST", "/api/cash/sessions"),
            ("GET", "/api/reports/dashboard"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_bad_token(self, client, db_session):
        resp = client.get("/api/products", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"


class TestLogin:

    def test_login_and_me(self, client, user):
        token = get_auth_token(client, user.username, TEST_PASSWORD)
        assert token

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.json["user"]["username"] == user.username

    def test_wrong_password(self, client, user):
        resp = client.post("/api/auth/login", json={"username": user.username, "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "x"})
        assert resp.status_code == 400

    def test_logout_revokes_token(self, client, user):
        token = get_auth_token(client, user.username, TEST_PASSWORD)

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["status"] == "healthy"


# =============================================================================
# CATALOG
# =============================================================================


class TestProductsApi:

    def test_create_with_opening_stock(self, client, headers):
        resp = client.post("/api/products", headers=headers, json={
            "code": "ARROZ-1KG", "name": "Arroz 1kg", "price_cents": 150, "cost_cents": 100, "initial_stock": 12,
        })
        assert resp.status_code == 201
        assert resp.json["stock"] == 12

        movements = client.get(
            f"/api/inventory/movements?product_id={resp.json['id']}", headers=headers,
        ).json
        assert movements["total"] == 1
        assert movements["items"][0]["kind"] == "OPENING_IN"

    def test_missing_required_fields(self, client, headers):
        resp = client.post("/api/products", headers=headers, json={"name": "Sin codigo"})
        assert resp.status_code == 400

    def test_duplicate_code(self, client, headers, make_product):
        make_product(code="DUP")
        resp = client.post("/api/products", headers=headers, json={"code": "DUP", "name": "x", "price_cents": 1})
        assert resp.status_code == 409

    def test_patch_stock_rejected(self, client, headers, make_product):
        product = make_product(stock=5)
        resp = client.patch(f"/api/products/{product.id}", headers=headers, json={"stock": 50})
        assert resp.status_code == 400

    def test_unknown_product(self, client, headers):
        assert client.get("/api/products/9999", headers=headers).status_code == 404


# =============================================================================
# SALES
# =============================================================================


class TestCheckoutApi:

    def test_checkout(self, client, headers, customer, make_product):
        product = make_product(stock=5, price_cents=200)

        resp = client.post("/api/sales", headers=headers, json={
            "client_id": customer.id,
            "items": [{"product_id": product.id, "quantity": 2}],
            "payment_method": "Tarjeta",
        })

        assert resp.status_code == 201
        assert resp.json["total_cents"] == 400
        assert resp.json["items"][0]["quantity"] == 2
        assert client.get(f"/api/products/{product.id}", headers=headers).json["stock"] == 3

    def test_insufficient_stock_details(self, client, headers, customer, make_product):
        product = make_product(stock=1)

        resp = client.post("/api/sales", headers=headers, json={
            "client_id": customer.id,
            "items": [{"product_id": product.id, "quantity": 3}],
        })

        assert resp.status_code == 409
        assert resp.json["details"] == [{
            "product_id": product.id, "code": product.code, "requested": 3, "available": 1,
        }]
        assert client.get("/api/sales", headers=headers).json["total"] == 0

    def test_missing_client(self, client, headers):
        resp = client.post("/api/sales", headers=headers, json={"items": []})
        assert resp.status_code == 400

    def test_unknown_client(self, client, headers, make_product):
        product = make_product(stock=1)
        resp = client.post("/api/sales", headers=headers, json={
            "client_id": 9999, "items": [{"product_id": product.id, "quantity": 1}],
        })
        assert resp.status_code == 404


# =============================================================================
# PURCHASES AND ADJUSTMENTS
# =============================================================================


class TestResolutionApi:

    def test_receive_twice_returns_warning(self, client, headers, supplier, make_product):
        product = make_product(stock=0)
        order = client.post("/api/purchase-orders", headers=headers, json={
            "supplier_id": supplier.id,
            "items": [{"product_id": product.id, "quantity": 6, "unit_cost_cents": 90}],
        }).json

        first = client.post(f"/api/purchase-orders/{order['id']}/receive", headers=headers)
        second = client.post(f"/api/purchase-orders/{order['id']}/receive", headers=headers)

        assert first.status_code == 200
        assert first.json["status"] == "Recibido"
        assert second.status_code == 409
        assert second.json["warning"] == "No changes were applied"
        assert client.get(f"/api/products/{product.id}", headers=headers).json["stock"] == 6

    def test_adjustment_flow(self, client, headers, make_product):
        product = make_product(stock=10)

        proposal = client.post("/api/adjustments", headers=headers, json={
            "product_id": product.id, "physical_stock": 10, "reason": "Conteo Fisico",
        })
        assert proposal.status_code == 201

        rejected = client.post(f"/api/adjustments/{proposal.json['id']}/reject", headers=headers, json={})
        assert rejected.status_code == 200
        assert rejected.json["status"] == "Rechazado"

        again = client.post(f"/api/adjustments/{proposal.json['id']}/approve", headers=headers, json={})
        assert again.status_code == 409
        assert "warning" in again.json

    def test_unknown_reason(self, client, headers, make_product):
        product = make_product(stock=1)
        resp = client.post("/api/adjustments", headers=headers, json={
            "product_id": product.id, "physical_stock": 0, "reason": "Otro",
        })
        assert resp.status_code == 400
        assert "allowed" in resp.json["details"]


# =============================================================================
# CASH
# =============================================================================


class TestCashApi:

    def test_open_and_close(self, client, headers):
        assert client.get("/api/cash/sessions/current", headers=headers).status_code == 404

        opened = client.post("/api/cash/sessions", headers=headers, json={"opening_amount_cents": 1000})
        assert opened.status_code == 201

        duplicate = client.post("/api/cash/sessions", headers=headers, json={"opening_amount_cents": 1000})
        assert duplicate.status_code == 409

        expense = client.post(f"/api/cash/sessions/{opened.json['id']}/movements", headers=headers, json={
            "kind": "Egreso", "amount_cents": 200, "payment_method": "Efectivo", "description": "Almuerzo",
        })
        assert expense.status_code == 201

        detail = client.get(f"/api/cash/sessions/{opened.json['id']}", headers=headers)
        assert detail.status_code == 200

        closed = client.post(
            f"/api/cash/sessions/{opened.json['id']}/close", headers=headers, json={"closing_amount_cents": 800},
        )
        assert closed.status_code == 200
        assert closed.json["expected_amount_cents"] == 800
        assert closed.json["difference_cents"] == 0


# =============================================================================
# INVENTORY MAINTENANCE
# =============================================================================


def test_recompute_repairs_drift(client, headers, make_product):
    product = make_product(stock=4)

    report = client.get(f"/api/inventory/products/{product.id}/reconcile", headers=headers)
    assert report.json["drift"] == 4

    repaired = client.post(f"/api/inventory/products/{product.id}/recompute", headers=headers, json={})
    assert repaired.status_code == 200
    assert repaired.json["repaired"] is True
    assert client.get(f"/api/products/{product.id}", headers=headers).json["stock"] == 0
