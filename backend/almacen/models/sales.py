from __future__ import annotations

from ..extensions import db
from almacen.time_utils import to_utc_z


PAYMENT_CASH = "Efectivo"
PAYMENT_CARD = "Tarjeta"
PAYMENT_TRANSFER = "Transferencia"

PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD, PAYMENT_TRANSFER)


class Sale(db.Model):
    """
    Point-of-sale ticket (venta).

    Created in one transaction together with its stock decrements and
    SALE_OUT movements; immutable afterwards.
    """
    __tablename__ = "ventas"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_number = db.Column(db.String(32), nullable=False, unique=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clientes.id"), nullable=False, index=True)
    payment_method = db.Column(db.String(32), nullable=False, default=PAYMENT_CASH)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Session that was open when the sale committed, if any
    cash_session_id = db.Column(db.Integer, db.ForeignKey("sesiones_caja.id"), nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    client = db.relationship("Client", backref=db.backref("sales", lazy=True))
    user = db.relationship("User")
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_number": self.sale_number,
            "client_id": self.client_id,
            "client_name": self.client.name if self.client else None,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "total_cents": self.total_cents,
            "user": self.user.username if self.user else None,
            "cash_session_id": self.cash_session_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    __tablename__ = "venta_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_venta_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("ventas.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("productos.id"), nullable=False, index=True)

    # Snapshot so the ticket reads the same after catalog edits
    product_code = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }
