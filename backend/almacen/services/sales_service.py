# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Point-of-sale checkout

WHY: A sale is one atomic unit. Either every line is decremented and
recorded (Sale + SaleItems + one SALE_OUT movement per line), or nothing
is written at all.

ORDER OF WORK inside the transaction:
1. take the write lock (BEGIN IMMEDIATE / row locks in product-id order)
2. re-read client and products
3. validate every line; all short lines are reported together
4. allocate the sale number, write header, lines and movements
5. commit

The cash-session rollup is refreshed after commit. A failure there is
logged and healed by the next recompute; it never undoes the sale.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ClientNotFound, InsufficientStock, NotFoundError, ProductNotFound, ValidationError
from ..extensions import db
from ..models import CashSession, Client, MovementKind, Product, Sale, SaleItem
from ..models.cash import SESSION_STATUS_OPEN
from ..models.sales import PAYMENT_CASH, PAYMENT_METHODS
from almacen.time_utils import utcnow
from .cash_service import refresh_open_session_totals
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import DOC_SALE, next_document_number
from .ledger_service import post_stock_movement
from .session_service import SessionContext, require_user


def _coerce_quantity(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("quantity must be a positive integer")
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, str) and value.strip().isdigit():
        quantity = int(value.strip())
    else:
        raise ValidationError("quantity must be a positive integer")
    if quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    return quantity


def normalize_cart(cart) -> dict[int, int]:
    """
    Merge a cart into {product_id: quantity}, keeping first-seen order.

    Accepts [{"product_id": 1, "quantity": 2}, ...] or [(1, 2), ...].
    """
    if not cart:
        raise ValidationError("Cart is empty")

    merged: dict[int, int] = {}
    for line in cart:
        if isinstance(line, dict):
            product_id = line.get("product_id")
            quantity = line.get("quantity")
        else:
            try:
                product_id, quantity = line
            except (TypeError, ValueError):
                raise ValidationError("Each cart line needs product_id and quantity")

        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError("product_id must be an integer")
        merged[product_id] = merged.get(product_id, 0) + _coerce_quantity(quantity)

    return merged


def _open_session_id(business_date) -> int | None:
    query = (
        db.session.query(CashSession.id)
        .filter(CashSession.status == SESSION_STATUS_OPEN)
        .order_by(CashSession.opened_at.desc(), CashSession.id.desc())
    )
    row = query.filter(CashSession.business_date == business_date).first() or query.first()
    return row[0] if row else None


def _refresh_cash_rollup() -> None:
    try:
        refresh_open_session_totals()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to refresh cash session totals after sale")


def checkout(
    ctx: SessionContext,
    client_id: int,
    cart,
    payment_method: str = PAYMENT_CASH,
    *,
    occurred_at: datetime | None = None,
) -> Sale:
    """
    Sell a cart to a client in one transaction.

    Raises:
        Unauthenticated: no active user in ctx (checked before any read)
        ValidationError: empty cart, bad quantity, unknown payment method
        ClientNotFound / ProductNotFound: unknown or inactive references
        InsufficientStock: at least one line exceeds stock; details list all
    """
    user = require_user(ctx)
    lines = normalize_cart(cart)
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Unknown payment method: {payment_method}",
            details={"allowed": list(PAYMENT_METHODS)},
        )

    def _op():
        begin_write()

        client = db.session.get(Client, client_id)
        if client is None or not client.is_active:
            raise ClientNotFound(f"Client {client_id} not found")

        # Lock in id order so concurrent checkouts cannot deadlock
        products = lock_for_update(
            db.session.query(Product)
            .filter(Product.id.in_(list(lines.keys())))
            .order_by(Product.id)
        ).all()
        by_id = {p.id: p for p in products}

        missing = [pid for pid in lines if pid not in by_id or not by_id[pid].is_active]
        if missing:
            raise ProductNotFound(
                f"Product {missing[0]} not found",
                details={"product_ids": missing},
            )

        short = []
        for product_id, quantity in lines.items():
            product = by_id[product_id]
            if quantity > product.stock:
                short.append({
                    "product_id": product_id,
                    "code": product.code,
                    "requested": quantity,
                    "available": product.stock,
                })
        if short:
            raise InsufficientStock("Insufficient stock to complete sale", details=short)

        now = occurred_at or utcnow()
        sale = Sale(
            sale_number=next_document_number(DOC_SALE, year=now.year),
            client_id=client.id,
            payment_method=payment_method,
            user_id=user.id,
            cash_session_id=_open_session_id(ctx.business_date),
            occurred_at=now,
        )
        db.session.add(sale)
        db.session.flush()

        subtotal = 0
        for product_id, quantity in lines.items():
            product = by_id[product_id]
            price = int(product.price_cents or 0)
            line_total = price * quantity
            subtotal += line_total

            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                product_code=product.code,
                product_name=product.name,
                quantity=quantity,
                unit_price_cents=price,
                subtotal_cents=line_total,
            ))
            post_stock_movement(
                product=product,
                kind=MovementKind.SALE_OUT,
                quantity=quantity,
                unit_price_cents=price,
                user_id=user.id,
                document=sale.sale_number,
                sale_id=sale.id,
                occurred_at=now,
            )

        sale.subtotal_cents = subtotal
        sale.total_cents = subtotal
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Sale %s committed: %s line(s), total_cents=%s",
        sale.sale_number, len(lines), sale.total_cents,
    )
    _refresh_cash_rollup()
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    client_id: int | None = None,
    payment_method: str | None = None,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[Sale], int]:
    """Sales newest first. start/end are inclusive. Returns (page, total_count)."""
    q = db.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.occurred_at >= start)
    if end is not None:
        q = q.filter(Sale.occurred_at <= end)
    if client_id is not None:
        q = q.filter(Sale.client_id == client_id)
    if payment_method:
        q = q.filter(Sale.payment_method == payment_method)

    total = q.count()
    rows = q.order_by(Sale.occurred_at.desc(), Sale.id.desc()).limit(limit).offset(offset).all()
    return rows, total
