# Overview: Service-layer operations for purchase orders; encapsulates business logic and database work.

"""
Purchase orders (ordenes de compra)

LIFECYCLE:
- create_order(): Pendiente, no stock effect
- receive_order(): Pendiente -> Recibido exactly once; every line becomes
  a PURCHASE_IN movement and stock increment in the same transaction

IDEMPOTENCY: receive_order() flips the status with a compare-and-set
UPDATE ... WHERE status = 'Pendiente'. A second receive (sequential or
concurrent) matches zero rows and raises AlreadyResolved; nothing is
written twice.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update

from ..errors import (
    AlreadyResolved,
    OrderNotFound,
    ProductNotFound,
    SupplierNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import MovementKind, Product, PurchaseOrder, PurchaseOrderItem, Supplier
from ..models.purchasing import ORDER_STATUS_PENDING, ORDER_STATUS_RECEIVED
from almacen.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import DOC_PURCHASE_ORDER, next_document_number
from .ledger_service import post_stock_movement
from .session_service import SessionContext, require_user


ORDER_STATUSES = (ORDER_STATUS_PENDING, ORDER_STATUS_RECEIVED)


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return value


def _non_negative_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer")
    return value


def _normalize_items(items) -> list[dict]:
    if not items:
        raise ValidationError("Purchase order needs at least one item")
    normalized = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object")
        product_id = item.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError("product_id must be an integer")
        normalized.append({
            "product_id": product_id,
            "quantity": _positive_int(item.get("quantity"), "quantity"),
            "unit_cost_cents": _non_negative_int(item.get("unit_cost_cents"), "unit_cost_cents"),
        })
    return normalized


def create_order(
    ctx: SessionContext,
    supplier_id: int,
    items,
    tax_cents: int = 0,
    expected_date: date | None = None,
    notes: str | None = None,
) -> PurchaseOrder:
    """
    Create a Pendiente purchase order with its items.

    Totals: subtotal = sum(quantity * unit_cost), total = subtotal + tax.
    """
    user = require_user(ctx)
    lines = _normalize_items(items)
    tax = _non_negative_int(tax_cents, "tax_cents")

    def _op():
        supplier = db.session.get(Supplier, supplier_id)
        if supplier is None or not supplier.is_active:
            raise SupplierNotFound(f"Supplier {supplier_id} not found")

        product_ids = {line["product_id"] for line in lines}
        found = {
            row[0] for row in
            db.session.query(Product.id).filter(Product.id.in_(product_ids)).all()
        }
        missing = sorted(product_ids - found)
        if missing:
            raise ProductNotFound(f"Product {missing[0]} not found", details={"product_ids": missing})

        now = utcnow()
        order = PurchaseOrder(
            order_number=next_document_number(DOC_PURCHASE_ORDER, year=now.year),
            supplier_id=supplier.id,
            status=ORDER_STATUS_PENDING,
            expected_date=expected_date,
            notes=notes,
            created_by_user_id=user.id,
        )
        subtotal = 0
        for line in lines:
            line_total = line["quantity"] * line["unit_cost_cents"]
            subtotal += line_total
            order.items.append(PurchaseOrderItem(
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_cost_cents=line["unit_cost_cents"],
                subtotal_cents=line_total,
            ))
        order.subtotal_cents = subtotal
        order.tax_cents = tax
        order.total_cents = subtotal + tax

        db.session.add(order)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Purchase order %s created (total_cents=%s)", order.order_number, order.total_cents)
    return order


def receive_order(ctx: SessionContext, order_id: int) -> PurchaseOrder:
    """
    Receive a Pendiente order: stock in, one movement per line.

    Raises:
        OrderNotFound: unknown order
        AlreadyResolved: order is not Pendiente; nothing changed
        ProductNotFound: a line's product disappeared; nothing changed
    """
    user = require_user(ctx)

    def _op():
        begin_write()
        now = utcnow()

        result = db.session.execute(
            update(PurchaseOrder)
            .where(PurchaseOrder.id == order_id, PurchaseOrder.status == ORDER_STATUS_PENDING)
            .values(
                status=ORDER_STATUS_RECEIVED,
                received_by_user_id=user.id,
                received_at=now,
                version_id=PurchaseOrder.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            order = db.session.get(PurchaseOrder, order_id)
            if order is None:
                raise OrderNotFound(f"Purchase order {order_id} not found")
            current_app.logger.warning(
                "Receive requested for purchase order %s in status %s", order.order_number, order.status
            )
            raise AlreadyResolved(
                f"Purchase order {order.order_number} is already {order.status}",
                details={"status": order.status},
            )

        order = db.session.get(PurchaseOrder, order_id, populate_existing=True)

        product_ids = sorted({item.product_id for item in order.items})
        products = lock_for_update(
            db.session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id)
        ).all()
        by_id = {p.id: p for p in products}

        for item in order.items:
            product = by_id.get(item.product_id)
            if product is None:
                raise ProductNotFound(f"Product {item.product_id} not found")
            post_stock_movement(
                product=product,
                kind=MovementKind.PURCHASE_IN,
                quantity=item.quantity,
                unit_price_cents=item.unit_cost_cents,
                user_id=user.id,
                document=order.order_number,
                purchase_order_id=order.id,
                occurred_at=now,
            )

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Purchase order %s received by %s", order.order_number, user.username)
    return order


def get_order(order_id: int) -> PurchaseOrder:
    order = db.session.get(PurchaseOrder, order_id)
    if order is None:
        raise OrderNotFound(f"Purchase order {order_id} not found")
    return order


def list_orders(
    *,
    status: str | None = None,
    supplier_id: int | None = None,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[PurchaseOrder], int]:
    """Orders newest first. Returns (page, total_count)."""
    q = db.session.query(PurchaseOrder)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {status}")
        q = q.filter(PurchaseOrder.status == status)
    if supplier_id is not None:
        q = q.filter(PurchaseOrder.supplier_id == supplier_id)

    total = q.count()
    rows = (
        q.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return rows, total
