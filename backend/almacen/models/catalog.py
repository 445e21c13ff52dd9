from __future__ import annotations

from ..extensions import db
from almacen.time_utils import to_utc_z


PRODUCT_STATUS_ACTIVE = "Activo"
PRODUCT_STATUS_LOW_STOCK = "StockBajo"
PRODUCT_STATUS_OUT_OF_STOCK = "Agotado"


def stock_status(stock: int, min_stock: int) -> str:
    """Derived product state; never stored."""
    if stock <= 0:
        return PRODUCT_STATUS_OUT_OF_STOCK
    if stock <= (min_stock or 0):
        return PRODUCT_STATUS_LOW_STOCK
    return PRODUCT_STATUS_ACTIVE


class Product(db.Model):
    """
    Product master data plus the authoritative on-hand quantity.

    STOCK: `stock` is a cached aggregate of the movements ledger. It is only
    assigned by ledger_service.post_stock_movement(), always in the same
    transaction that appends the matching Movement. Catalog edits never
    touch it.

    VERSIONING: version_id turns concurrent stock writes that slipped past
    row locks into StaleDataError, which run_with_retry() retries.
    """
    __tablename__ = "productos"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_productos_stock_non_negative"),
        db.Index("ix_productos_name", "name"),
        db.Index("ix_productos_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status(self) -> str:
        return stock_status(self.stock or 0, self.min_stock or 0)

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "status": self.status,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """Supplier (proveedor) that purchase orders are placed with."""
    __tablename__ = "proveedores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    tax_id = db.Column(db.String(32), nullable=True, unique=True)
    contact_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "tax_id": self.tax_id,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Client(db.Model):
    """Client (cliente) a sale is made to."""
    __tablename__ = "clientes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    document_number = db.Column(db.String(32), nullable=True, unique=True)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "document_number": self.document_number,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
