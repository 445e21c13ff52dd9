# Overview: Pytest coverage for products, suppliers and clients.

import pytest

from almacen.errors import ConflictError, ProductNotFound, Unauthenticated, ValidationError
from almacen.models import Movement
from almacen.services import catalog_service, ledger_service
from almacen.services.session_service import build_context


class TestProducts:

    def test_create_with_opening_stock(self, db_session, ctx):
        product = catalog_service.create_product(
            ctx,
            patch={"code": "LECHE-1L", "name": "Leche 1L", "price_cents": 110, "cost_cents": 80},
            initial_stock=24,
        )

        assert product.stock == 24
        movement = db_session.query(Movement).filter_by(product_id=product.id).one()
        assert movement.kind == "OPENING_IN"
        assert movement.unit_price_cents == 80
        assert movement.document == "INI-LECHE-1L"
        assert ledger_service.reconcile_product(product.id).consistent

    def test_create_without_stock_writes_no_movement(self, db_session, ctx):
        product = catalog_service.create_product(ctx, patch={"code": "SAL", "name": "Sal", "price_cents": 50})

        assert product.stock == 0
        assert db_session.query(Movement).count() == 0

    def test_duplicate_code(self, db_session, ctx, make_product):
        make_product(code="PAN")
        with pytest.raises(ConflictError):
            catalog_service.create_product(ctx, patch={"code": "PAN", "name": "Pan", "price_cents": 10})

    def test_requires_user(self, db_session):
        with pytest.raises(Unauthenticated):
            catalog_service.create_product(build_context(None), patch={"code": "X", "name": "X"})

    def test_stock_is_not_a_catalog_field(self, db_session, ctx, make_product):
        product = make_product(stock=3)
        with pytest.raises(ValidationError):
            catalog_service.update_product(ctx, product.id, {"stock": 100})

    def test_update_and_deactivate(self, db_session, ctx, make_product):
        product = make_product(price_cents=100)

        catalog_service.update_product(ctx, product.id, {"price_cents": 120, "name": "Renombrado"})
        catalog_service.deactivate_product(ctx, product.id)

        db_session.refresh(product)
        assert product.price_cents == 120
        assert product.name == "Renombrado"
        assert product.is_active is False
        # Deactivated rows are kept, only hidden
        assert catalog_service.get_product(product.id).id == product.id
        assert catalog_service.list_products()["count"] == 0
        assert catalog_service.list_products(include_inactive=True)["count"] == 1

    def test_list_search_and_status(self, db_session, make_product):
        make_product(code="AZ-1", name="Azucar", stock=0)
        make_product(code="AZ-2", name="Azucar morena", stock=2, min_stock=5)
        make_product(code="CF-1", name="Cafe", stock=50, min_stock=5)

        assert catalog_service.list_products(search="azucar")["count"] == 2
        assert [p["code"] for p in catalog_service.list_products(status="Agotado")["items"]] == ["AZ-1"]
        assert [p["code"] for p in catalog_service.list_products(status="StockBajo")["items"]] == ["AZ-2"]
        assert [p["code"] for p in catalog_service.list_products(status="Activo")["items"]] == ["CF-1"]

    def test_pagination_envelope(self, db_session, make_product):
        for _ in range(3):
            make_product()

        page = catalog_service.list_products(page=2, per_page=2)

        assert page["count"] == 1
        assert page["pagination"]["total"] == 3
        assert page["pagination"]["total_pages"] == 2
        assert page["pagination"]["has_prev"] is True
        assert page["pagination"]["has_next"] is False

    def test_get_unknown(self, db_session):
        with pytest.raises(ProductNotFound):
            catalog_service.get_product(9999)


class TestSuppliersAndClients:

    def test_supplier_name_unique(self, db_session, ctx, supplier):
        with pytest.raises(ConflictError):
            catalog_service.create_supplier(ctx, patch={"name": supplier.name})

    def test_supplier_update(self, db_session, ctx, supplier):
        catalog_service.update_supplier(ctx, supplier.id, {"phone": "022-555-0101"})
        assert catalog_service.get_supplier(supplier.id).phone == "022-555-0101"

    def test_client_document_unique(self, db_session, ctx, customer):
        with pytest.raises(ConflictError):
            catalog_service.create_client(ctx, patch={"name": "Otro", "document_number": customer.document_number})

    def test_client_search(self, db_session, ctx, customer):
        catalog_service.create_client(ctx, patch={"name": "Ferreteria Sur"})

        result = catalog_service.list_clients(search="ferre")
        assert [c["name"] for c in result["items"]] == ["Ferreteria Sur"]

    def test_client_requires_name(self, db_session, ctx):
        with pytest.raises(ValidationError):
            catalog_service.create_client(ctx, patch={"phone": "1"})
