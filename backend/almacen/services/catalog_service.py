# Overview: Service-layer operations for products, suppliers and clients; encapsulates business logic and database work.

"""
Catalog Service

Products, suppliers (proveedores) and clients (clientes).

STOCK: catalog writes never touch Product.stock. The only exception is
the opening entry at creation, which goes through the ledger as an
OPENING_IN movement in the same transaction as the new product row.

DEACTIVATION: catalog rows are never deleted; movements, orders and sales
keep pointing at them. Inactive rows are hidden from lists by default and
rejected by new sales and orders.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import ClientNotFound, ConflictError, ProductNotFound, SupplierNotFound, ValidationError
from ..extensions import db
from ..models import Client, MovementKind, Product, Supplier
from ..models.catalog import (
    PRODUCT_STATUS_ACTIVE,
    PRODUCT_STATUS_LOW_STOCK,
    PRODUCT_STATUS_OUT_OF_STOCK,
)
from .concurrency import begin_write, run_with_retry
from .ledger_service import post_stock_movement
from .session_service import SessionContext, require_user


PRODUCT_MUTABLE_FIELDS = {"code", "name", "description", "category", "min_stock", "price_cents", "cost_cents", "is_active"}
SUPPLIER_MUTABLE_FIELDS = {"name", "tax_id", "contact_name", "phone", "email", "address", "is_active"}
CLIENT_MUTABLE_FIELDS = {"name", "document_number", "phone", "email", "address", "is_active"}

PRODUCT_STATUSES = (PRODUCT_STATUS_ACTIVE, PRODUCT_STATUS_LOW_STOCK, PRODUCT_STATUS_OUT_OF_STOCK)


def _apply_patch(obj, patch: dict, mutable: set[str]) -> None:
    for k, v in patch.items():
        if k not in mutable:
            continue
        setattr(obj, k, v)


def _check_unique(model, field: str, value, *, exclude_id: int | None = None, label: str) -> None:
    if value is None:
        return
    q = db.session.query(model.id).filter(getattr(model, field) == value)
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"{label} already exists: {value}")


def _commit_or_conflict(message: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message)


def _paginate(query, page: int | None, per_page: int | None) -> dict:
    """Same envelope for every catalog list: items, count and optional pagination."""
    if page is None:
        rows = query.all()
        return {"items": [r.to_dict() for r in rows], "count": len(rows)}

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)  # Ensure page >= 1

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


# =============================================================================
# PRODUCTS
# =============================================================================

def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(f"Product {product_id} not found")
    return product


def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    status: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional search, filters and pagination.

    search matches code or name (case-insensitive substring).
    status filters on the derived Activo/StockBajo/Agotado state.
    """
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Product.code.ilike(like), Product.name.ilike(like)))
    if category:
        q = q.filter(Product.category == category)
    if status:
        if status not in PRODUCT_STATUSES:
            raise ValidationError(f"Unknown product status: {status}")
        # Mirrors catalog.stock_status()
        if status == PRODUCT_STATUS_OUT_OF_STOCK:
            q = q.filter(Product.stock <= 0)
        elif status == PRODUCT_STATUS_LOW_STOCK:
            q = q.filter(Product.stock > 0, Product.stock <= Product.min_stock)
        else:
            q = q.filter(Product.stock > 0, Product.stock > Product.min_stock)

    q = q.order_by(Product.name.asc(), Product.id.asc())
    return _paginate(q, page, per_page)


def create_product(ctx: SessionContext, *, patch: dict, initial_stock: int = 0) -> Product:
    """
    Create a product, optionally with opening stock.

    Opening stock is posted as an OPENING_IN movement valued at cost
    (price when no cost is set), in the same transaction.

    Raises:
        ConflictError: code already exists
    """
    user = require_user(ctx)
    if not patch.get("code") or not patch.get("name"):
        raise ValidationError("code and name are required")
    if isinstance(initial_stock, bool) or not isinstance(initial_stock, int) or initial_stock < 0:
        raise ValidationError("initial_stock must be a non-negative integer")

    def _op():
        if initial_stock:
            begin_write()
        _check_unique(Product, "code", patch.get("code"), label="Product code")

        product = Product(stock=0)
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        db.session.add(product)
        db.session.flush()

        if initial_stock:
            unit = product.cost_cents if product.cost_cents is not None else (product.price_cents or 0)
            post_stock_movement(
                product=product,
                kind=MovementKind.OPENING_IN,
                quantity=initial_stock,
                unit_price_cents=unit,
                user_id=user.id,
                document=f"INI-{product.code}",
                note="Inventario inicial",
            )

        _commit_or_conflict(f"Product code already exists: {patch.get('code')}")
        return product

    product = run_with_retry(_op)
    current_app.logger.info("Product %s created (opening stock %s)", product.code, initial_stock)
    return product


def update_product(ctx: SessionContext, product_id: int, patch: dict) -> Product:
    """Update catalog fields. Stock is not a catalog field."""
    require_user(ctx)
    if "stock" in patch:
        raise ValidationError("stock can only change through inventory movements")

    def _op():
        product = get_product(product_id)
        if "code" in patch and patch["code"] != product.code:
            _check_unique(Product, "code", patch["code"], exclude_id=product.id, label="Product code")
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        _commit_or_conflict(f"Product code already exists: {patch.get('code')}")
        return product

    return run_with_retry(_op)


def deactivate_product(ctx: SessionContext, product_id: int) -> Product:
    return update_product(ctx, product_id, {"is_active": False})


# =============================================================================
# SUPPLIERS
# =============================================================================

def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise SupplierNotFound(f"Supplier {supplier_id} not found")
    return supplier


def list_suppliers(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    q = db.session.query(Supplier)
    if not include_inactive:
        q = q.filter(Supplier.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Supplier.name.ilike(like), Supplier.tax_id.ilike(like)))
    return _paginate(q.order_by(Supplier.name.asc(), Supplier.id.asc()), page, per_page)


def create_supplier(ctx: SessionContext, *, patch: dict) -> Supplier:
    require_user(ctx)
    if not patch.get("name"):
        raise ValidationError("name is required")

    def _op():
        _check_unique(Supplier, "name", patch.get("name"), label="Supplier")
        _check_unique(Supplier, "tax_id", patch.get("tax_id"), label="Supplier tax id")
        supplier = Supplier()
        _apply_patch(supplier, patch, SUPPLIER_MUTABLE_FIELDS)
        db.session.add(supplier)
        _commit_or_conflict("Supplier already exists")
        return supplier

    return run_with_retry(_op)


def update_supplier(ctx: SessionContext, supplier_id: int, patch: dict) -> Supplier:
    require_user(ctx)

    def _op():
        supplier = get_supplier(supplier_id)
        if "name" in patch:
            _check_unique(Supplier, "name", patch["name"], exclude_id=supplier.id, label="Supplier")
        if "tax_id" in patch:
            _check_unique(Supplier, "tax_id", patch["tax_id"], exclude_id=supplier.id, label="Supplier tax id")
        _apply_patch(supplier, patch, SUPPLIER_MUTABLE_FIELDS)
        _commit_or_conflict("Supplier already exists")
        return supplier

    return run_with_retry(_op)


# =============================================================================
# CLIENTS
# =============================================================================

def get_client(client_id: int) -> Client:
    client = db.session.get(Client, client_id)
    if client is None:
        raise ClientNotFound(f"Client {client_id} not found")
    return client


def list_clients(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    q = db.session.query(Client)
    if not include_inactive:
        q = q.filter(Client.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Client.name.ilike(like), Client.document_number.ilike(like)))
    return _paginate(q.order_by(Client.name.asc(), Client.id.asc()), page, per_page)


def create_client(ctx: SessionContext, *, patch: dict) -> Client:
    require_user(ctx)
    if not patch.get("name"):
        raise ValidationError("name is required")

    def _op():
        _check_unique(Client, "document_number", patch.get("document_number"), label="Client document")
        client = Client()
        _apply_patch(client, patch, CLIENT_MUTABLE_FIELDS)
        db.session.add(client)
        _commit_or_conflict("Client document already exists")
        return client

    return run_with_retry(_op)


def update_client(ctx: SessionContext, client_id: int, patch: dict) -> Client:
    require_user(ctx)

    def _op():
        client = get_client(client_id)
        if "document_number" in patch:
            _check_unique(
                Client, "document_number", patch["document_number"],
                exclude_id=client.id, label="Client document",
            )
        _apply_patch(client, patch, CLIENT_MUTABLE_FIELDS)
        _commit_or_conflict("Client document already exists")
        return client

    return run_with_retry(_op)
