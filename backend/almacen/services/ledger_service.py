# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

"""
Stock ledger (movimientos)

INVARIANTS:
- Product.stock equals SUM(Entrada quantities) - SUM(Salida quantities)
  over the product's movements, in commit order.
- post_stock_movement() is the only code that changes Product.stock in
  normal operation. It always appends the matching Movement in the same
  transaction. recompute_from_ledger(repair=True) is the operator escape
  hatch that puts a drifted stock back on the ledger sum.
- Movements are append-only (enforced by ORM listeners on the model).

Callers own the transaction: post_stock_movement() flushes but never
commits, so a failure anywhere in the caller's _op() discards both the
stock change and the movement.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import case, func

from ..errors import InsufficientStock, ProductNotFound, ValidationError
from ..extensions import db
from ..models import Movement, MovementKind, Product
from almacen.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry


def post_stock_movement(
    *,
    product: Product,
    kind: MovementKind,
    quantity: int,
    unit_price_cents: int,
    user_id: int | None,
    document: str | None = None,
    note: str | None = None,
    sale_id: int | None = None,
    purchase_order_id: int | None = None,
    adjustment_id: int | None = None,
    occurred_at: datetime | None = None,
) -> Movement:
    """
    Apply one stock change and append its movement.

    The product must already be locked by the caller (begin_write() on
    SQLite, lock_for_update() elsewhere). Raises InsufficientStock when an
    outbound movement would take stock below zero; nothing is written then.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    if unit_price_cents is None or unit_price_cents < 0:
        raise ValidationError("unit_price_cents must be >= 0")

    kind = MovementKind(kind)
    stock_before = int(product.stock or 0)
    stock_after = stock_before + kind.sign * quantity
    if stock_after < 0:
        raise InsufficientStock(
            f"Insufficient stock for {product.code}",
            details=[{
                "product_id": product.id,
                "code": product.code,
                "requested": quantity,
                "available": stock_before,
            }],
        )

    product.stock = stock_after

    movement = Movement(
        kind=kind.value,
        product_id=product.id,
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        total_cents=quantity * unit_price_cents,
        stock_before=stock_before,
        stock_after=stock_after,
        document=document,
        note=note,
        sale_id=sale_id,
        purchase_order_id=purchase_order_id,
        adjustment_id=adjustment_id,
        user_id=user_id,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def ledger_balance(product_id: int) -> int:
    """SUM(Entrada) - SUM(Salida) over every movement of the product."""
    inbound = [k.value for k in MovementKind if k.sign > 0]
    signed = case(
        (Movement.kind.in_(inbound), Movement.quantity),
        else_=-Movement.quantity,
    )
    total = (
        db.session.query(func.coalesce(func.sum(signed), 0))
        .filter(Movement.product_id == product_id)
        .scalar()
    )
    return int(total or 0)


@dataclass
class ReconcileResult:
    product_id: int
    code: str
    stock: int
    ledger: int
    repaired: bool = False

    @property
    def drift(self) -> int:
        return self.stock - self.ledger

    @property
    def consistent(self) -> bool:
        return self.drift == 0

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "code": self.code,
            "stock": self.stock,
            "ledger": self.ledger,
            "drift": self.drift,
            "consistent": self.consistent,
            "repaired": self.repaired,
        }


def reconcile_product(product_id: int) -> ReconcileResult:
    """Compare the stored stock with the ledger sum. Read-only."""
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(f"Product {product_id} not found")
    return ReconcileResult(
        product_id=product.id,
        code=product.code,
        stock=int(product.stock or 0),
        ledger=ledger_balance(product.id),
    )


def recompute_from_ledger(product_id: int, repair: bool = False) -> ReconcileResult:
    """
    Rebuild a product's stock from its movements.

    With repair=False this only reports. With repair=True a drifted stock
    is overwritten with the ledger sum. The repair itself is not a
    movement: the ledger already explains the corrected value.
    """
    if not repair:
        return reconcile_product(product_id)

    def _op():
        begin_write()
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found")

        result = ReconcileResult(
            product_id=product.id,
            code=product.code,
            stock=int(product.stock or 0),
            ledger=ledger_balance(product.id),
        )
        if result.consistent:
            db.session.rollback()
            return result

        if result.ledger < 0:
            raise ValidationError(
                f"Ledger for {product.code} sums to {result.ledger}; cannot repair to a negative stock"
            )

        current_app.logger.warning(
            "Repairing stock drift for %s: stored=%s ledger=%s",
            product.code, result.stock, result.ledger,
        )
        product.stock = result.ledger
        db.session.commit()
        result.repaired = True
        return result

    return run_with_retry(_op)


def reconcile_all(repair: bool = False) -> list[ReconcileResult]:
    """Check every product; returns only the drifted ones."""
    product_ids = [row[0] for row in db.session.query(Product.id).order_by(Product.id).all()]
    drifted = []
    for product_id in product_ids:
        result = recompute_from_ledger(product_id, repair=repair)
        if not result.consistent:
            drifted.append(result)
    return drifted


def list_movements(
    *,
    product_id: int | None = None,
    kind: str | None = None,
    movement_type: str | None = None,
    document: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[Movement], int]:
    """
    Movements newest first, filtered. Returns (page, total_count).

    movement_type is "Entrada" or "Salida"; start/end are inclusive.
    """
    q = db.session.query(Movement)
    if product_id is not None:
        q = q.filter(Movement.product_id == product_id)
    if kind:
        try:
            q = q.filter(Movement.kind == MovementKind(kind).value)
        except ValueError:
            raise ValidationError(f"Unknown movement kind: {kind}")
    if movement_type:
        kinds = [k.value for k in MovementKind if k.movement_type == movement_type]
        if not kinds:
            raise ValidationError(f"Unknown movement type: {movement_type}")
        q = q.filter(Movement.kind.in_(kinds))
    if document:
        q = q.filter(Movement.document == document)
    if start is not None:
        q = q.filter(Movement.occurred_at >= start)
    if end is not None:
        q = q.filter(Movement.occurred_at <= end)

    total = q.count()
    rows = (
        q.order_by(Movement.occurred_at.desc(), Movement.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return rows, total
