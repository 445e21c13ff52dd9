# Overview: Service-layer operations for stock adjustments; encapsulates business logic and database work.

"""
Inventory adjustments (ajustes)

WORKFLOW:
1. propose_adjustment(): record a physical count against the current
   system stock. No stock effect.
2. approve_adjustment(): Pendiente -> Aprobado; stock is SET to the
   counted quantity and the applied delta is written as a movement.
3. reject_adjustment(): Pendiente -> Rechazado; no stock effect.

Aprobado and Rechazado are terminal. Status flips use a compare-and-set
UPDATE so a second resolution raises AlreadyResolved and changes nothing.

DRIFT: stock may move between proposal and approval (sales, receipts).
Approval still lands on physical_stock; the movement carries the delta
actually applied (stored as applied_difference) so the ledger keeps
summing to stock.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..errors import AdjustmentNotFound, AlreadyResolved, ProductNotFound, ValidationError
from ..extensions import db
from ..models import Adjustment, MovementKind, Product
from ..models.inventory import (
    ADJUSTMENT_REASONS,
    ADJUSTMENT_STATUS_APPROVED,
    ADJUSTMENT_STATUS_PENDING,
    ADJUSTMENT_STATUS_REJECTED,
)
from almacen.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import DOC_ADJUSTMENT, next_document_number
from .ledger_service import post_stock_movement
from .session_service import SessionContext, require_user


ADJUSTMENT_STATUSES = (ADJUSTMENT_STATUS_PENDING, ADJUSTMENT_STATUS_APPROVED, ADJUSTMENT_STATUS_REJECTED)


def propose_adjustment(
    ctx: SessionContext,
    product_id: int,
    physical_stock: int,
    reason: str,
    notes: str | None = None,
) -> Adjustment:
    """
    Record a Pendiente adjustment.

    Captures system_stock, difference = physical - system, the product's
    current price and value_cents = |difference| * price.
    """
    user = require_user(ctx)
    if isinstance(physical_stock, bool) or not isinstance(physical_stock, int) or physical_stock < 0:
        raise ValidationError("physical_stock must be a non-negative integer")
    if reason not in ADJUSTMENT_REASONS:
        raise ValidationError(
            f"Unknown adjustment reason: {reason}",
            details={"allowed": list(ADJUSTMENT_REASONS)},
        )

    def _op():
        product = db.session.get(Product, product_id)
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found")

        system_stock = int(product.stock or 0)
        difference = physical_stock - system_stock
        price = int(product.price_cents or 0)
        now = utcnow()

        adjustment = Adjustment(
            adjustment_number=next_document_number(DOC_ADJUSTMENT, year=now.year),
            product_id=product.id,
            system_stock=system_stock,
            physical_stock=physical_stock,
            difference=difference,
            unit_price_cents=price,
            value_cents=abs(difference) * price,
            reason=reason,
            notes=notes,
            status=ADJUSTMENT_STATUS_PENDING,
            created_by_user_id=user.id,
        )
        db.session.add(adjustment)
        db.session.commit()
        return adjustment

    adjustment = run_with_retry(_op)
    current_app.logger.info(
        "Adjustment %s proposed for product %s (difference=%s)",
        adjustment.adjustment_number, product_id, adjustment.difference,
    )
    return adjustment


def _claim(adjustment_id: int, new_status: str, user_id: int, note: str | None):
    """Compare-and-set Pendiente -> new_status. Raises if the claim fails."""
    result = db.session.execute(
        update(Adjustment)
        .where(Adjustment.id == adjustment_id, Adjustment.status == ADJUSTMENT_STATUS_PENDING)
        .values(
            status=new_status,
            resolved_by_user_id=user_id,
            resolved_at=utcnow(),
            resolution_note=note,
            version_id=Adjustment.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return db.session.get(Adjustment, adjustment_id, populate_existing=True)

    adjustment = db.session.get(Adjustment, adjustment_id)
    if adjustment is None:
        raise AdjustmentNotFound(f"Adjustment {adjustment_id} not found")
    current_app.logger.warning(
        "Resolution requested for adjustment %s in status %s",
        adjustment.adjustment_number, adjustment.status,
    )
    raise AlreadyResolved(
        f"Adjustment {adjustment.adjustment_number} is already {adjustment.status}",
        details={"status": adjustment.status},
    )


def approve_adjustment(ctx: SessionContext, adjustment_id: int, note: str | None = None) -> Adjustment:
    """
    Approve a Pendiente adjustment and set stock to the counted quantity.

    Writes an ADJUSTMENT_IN (delta >= 0) or ADJUSTMENT_OUT movement of
    |delta| units; a zero delta writes no movement.
    """
    user = require_user(ctx)

    def _op():
        begin_write()
        adjustment = _claim(adjustment_id, ADJUSTMENT_STATUS_APPROVED, user.id, note)

        product = lock_for_update(
            db.session.query(Product).filter_by(id=adjustment.product_id)
        ).first()
        if product is None:
            raise ProductNotFound(f"Product {adjustment.product_id} not found")

        applied = adjustment.physical_stock - int(product.stock or 0)
        adjustment.applied_difference = applied

        if applied != 0:
            post_stock_movement(
                product=product,
                kind=MovementKind.ADJUSTMENT_IN if applied > 0 else MovementKind.ADJUSTMENT_OUT,
                quantity=abs(applied),
                unit_price_cents=adjustment.unit_price_cents,
                user_id=user.id,
                document=adjustment.adjustment_number,
                note=adjustment.reason,
                adjustment_id=adjustment.id,
            )

        db.session.commit()
        return adjustment

    adjustment = run_with_retry(_op)
    if adjustment.applied_difference != adjustment.difference:
        current_app.logger.warning(
            "Adjustment %s applied %s instead of proposed %s (stock moved since proposal)",
            adjustment.adjustment_number, adjustment.applied_difference, adjustment.difference,
        )
    current_app.logger.info("Adjustment %s approved by %s", adjustment.adjustment_number, user.username)
    return adjustment


def reject_adjustment(ctx: SessionContext, adjustment_id: int, note: str | None = None) -> Adjustment:
    """Reject a Pendiente adjustment. No stock or movement effect."""
    user = require_user(ctx)

    def _op():
        begin_write()
        adjustment = _claim(adjustment_id, ADJUSTMENT_STATUS_REJECTED, user.id, note)
        db.session.commit()
        return adjustment

    adjustment = run_with_retry(_op)
    current_app.logger.info("Adjustment %s rejected by %s", adjustment.adjustment_number, user.username)
    return adjustment


def get_adjustment(adjustment_id: int) -> Adjustment:
    adjustment = db.session.get(Adjustment, adjustment_id)
    if adjustment is None:
        raise AdjustmentNotFound(f"Adjustment {adjustment_id} not found")
    return adjustment


def list_adjustments(
    *,
    status: str | None = None,
    product_id: int | None = None,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[Adjustment], int]:
    """Adjustments newest first. Returns (page, total_count)."""
    q = db.session.query(Adjustment)
    if status:
        if status not in ADJUSTMENT_STATUSES:
            raise ValidationError(f"Unknown adjustment status: {status}")
        q = q.filter(Adjustment.status == status)
    if product_id is not None:
        q = q.filter(Adjustment.product_id == product_id)

    total = q.count()
    rows = q.order_by(Adjustment.created_at.desc(), Adjustment.id.desc()).limit(limit).offset(offset).all()
    return rows, total
