from __future__ import annotations

from enum import Enum

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..extensions import db
from almacen.time_utils import to_utc_z


MOVEMENT_IN = "Entrada"
MOVEMENT_OUT = "Salida"

CONCEPT_SALE = "Venta"
CONCEPT_PURCHASE = "Compra"
CONCEPT_ADJUSTMENT = "Ajuste"
CONCEPT_OPENING = "Inventario Inicial"


class MovementKind(str, Enum):
    """
    Every stock-affecting event the ledger knows about.

    Direction and concept are derived from the member, so code that
    matches on kind is exhaustive by construction.
    """
    SALE_OUT = "SALE_OUT"
    PURCHASE_IN = "PURCHASE_IN"
    ADJUSTMENT_IN = "ADJUSTMENT_IN"
    ADJUSTMENT_OUT = "ADJUSTMENT_OUT"
    OPENING_IN = "OPENING_IN"

    @property
    def movement_type(self) -> str:
        return MOVEMENT_IN if self.sign > 0 else MOVEMENT_OUT

    @property
    def sign(self) -> int:
        return -1 if self in (MovementKind.SALE_OUT, MovementKind.ADJUSTMENT_OUT) else 1

    @property
    def concept(self) -> str:
        return _KIND_CONCEPTS[self]


_KIND_CONCEPTS = {
    MovementKind.SALE_OUT: CONCEPT_SALE,
    MovementKind.PURCHASE_IN: CONCEPT_PURCHASE,
    MovementKind.ADJUSTMENT_IN: CONCEPT_ADJUSTMENT,
    MovementKind.ADJUSTMENT_OUT: CONCEPT_ADJUSTMENT,
    MovementKind.OPENING_IN: CONCEPT_OPENING,
}


class Movement(db.Model):
    """
    Inventory ledger entry (movimiento).

    APPEND-ONLY: rows are inserted in the same transaction as the stock
    change they describe and are never updated or deleted afterwards.
    stock_before/stock_after snapshot the product row at write time.
    """
    __tablename__ = "movimientos"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_movimientos_quantity_positive"),
        db.Index("ix_movimientos_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    kind = db.Column(db.String(32), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("productos.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    # Human-readable originating document (VTA-2026-0001, COMP-2026-001, ...)
    document = db.Column(db.String(64), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("ventas.id"), nullable=True, index=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("ordenes_compra.id"), nullable=True, index=True)
    adjustment_id = db.Column(db.Integer, db.ForeignKey("ajustes.id"), nullable=True, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))
    user = db.relationship("User")

    @property
    def movement_kind(self) -> MovementKind:
        return MovementKind(self.kind)

    @property
    def movement_type(self) -> str:
        return self.movement_kind.movement_type

    @property
    def concept(self) -> str:
        return self.movement_kind.concept

    @property
    def signed_quantity(self) -> int:
        return self.movement_kind.sign * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "type": self.movement_type,
            "concept": self.concept,
            "product_id": self.product_id,
            "product_code": self.product.code if self.product else None,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_cents": self.total_cents,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "document": self.document,
            "note": self.note,
            "sale_id": self.sale_id,
            "purchase_order_id": self.purchase_order_id,
            "adjustment_id": self.adjustment_id,
            "user": self.user.username if self.user else None,
            "occurred_at": to_utc_z(self.occurred_at),
        }


@event.listens_for(Movement, "before_update")
def _reject_movement_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and session.is_modified(target, include_collections=False):
        raise ValueError("inventory movements are append-only")


@event.listens_for(Movement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise ValueError("inventory movements are append-only")


ADJUSTMENT_STATUS_PENDING = "Pendiente"
ADJUSTMENT_STATUS_APPROVED = "Aprobado"
ADJUSTMENT_STATUS_REJECTED = "Rechazado"

ADJUSTMENT_REASONS = (
    "Conteo Fisico",
    "Merma",
    "Correccion",
    "Vencimiento",
    "Robo/Perdida",
)


class Adjustment(db.Model):
    """
    Proposed stock correction from a physical count (ajuste).

    LIFECYCLE:
    - Pendiente: proposal recorded, no stock effect
    - Aprobado: stock set to physical_stock, movement written (terminal)
    - Rechazado: no stock effect (terminal)

    unit_price_cents is captured when the proposal is made; value_cents
    never follows later price changes.
    """
    __tablename__ = "ajustes"
    __table_args__ = (
        db.CheckConstraint("physical_stock >= 0", name="ck_ajustes_physical_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    adjustment_number = db.Column(db.String(32), nullable=False, unique=True)

    product_id = db.Column(db.Integer, db.ForeignKey("productos.id"), nullable=False, index=True)

    system_stock = db.Column(db.Integer, nullable=False)
    physical_stock = db.Column(db.Integer, nullable=False)
    difference = db.Column(db.Integer, nullable=False)

    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    value_cents = db.Column(db.Integer, nullable=False, default=0)

    reason = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ADJUSTMENT_STATUS_PENDING, index=True)

    # Delta actually applied at approval (differs from `difference` on stock drift)
    applied_difference = db.Column(db.Integer, nullable=True)
    resolution_note = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    resolved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    # At most one; none while pending, when rejected, or for a zero applied delta
    movements = db.relationship("Movement", backref="adjustment", lazy=True)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def movement_id(self) -> int | None:
        return self.movements[0].id if self.movements else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "adjustment_number": self.adjustment_number,
            "product_id": self.product_id,
            "product_code": self.product.code if self.product else None,
            "product_name": self.product.name if self.product else None,
            "system_stock": self.system_stock,
            "physical_stock": self.physical_stock,
            "difference": self.difference,
            "unit_price_cents": self.unit_price_cents,
            "value_cents": self.value_cents,
            "reason": self.reason,
            "notes": self.notes,
            "status": self.status,
            "applied_difference": self.applied_difference,
            "movement_id": self.movement_id,
            "resolution_note": self.resolution_note,
            "created_by_user_id": self.created_by_user_id,
            "resolved_by_user_id": self.resolved_by_user_id,
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
            "created_at": to_utc_z(self.created_at),
        }
