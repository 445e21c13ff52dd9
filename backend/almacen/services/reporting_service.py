# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func

from almacen.extensions import db
from almacen.errors import ValidationError
from almacen.models import (
    Adjustment,
    CashSession,
    Product,
    PurchaseOrder,
    Sale,
    SaleItem,
    Supplier,
)
from almacen.models.cash import SESSION_STATUS_OPEN
from almacen.models.catalog import (
    PRODUCT_STATUS_ACTIVE,
    PRODUCT_STATUS_LOW_STOCK,
    PRODUCT_STATUS_OUT_OF_STOCK,
)
from almacen.models.inventory import ADJUSTMENT_STATUS_PENDING
from almacen.models.purchasing import ORDER_STATUS_PENDING, ORDER_STATUS_RECEIVED
from almacen.time_utils import day_bounds, to_utc_z, utcnow


def _range_filters(column, start: datetime | None, end: datetime | None) -> list:
    if start and end and start > end:
        raise ValidationError("start must be before end")
    filters = []
    if start:
        filters.append(column >= start)
    if end:
        filters.append(column <= end)
    return filters


def dashboard_summary(today: date | None = None) -> dict:
    """Headline numbers for the landing page."""
    today = today or utcnow().date()
    day_start, day_end = day_bounds(today)

    products = db.session.query(Product).filter(Product.is_active.is_(True)).all()
    low_stock = [p for p in products if p.status == PRODUCT_STATUS_LOW_STOCK]
    out_of_stock = [p for p in products if p.status == PRODUCT_STATUS_OUT_OF_STOCK]
    inventory_value = sum(int(p.stock or 0) * int(p.price_cents or 0) for p in products)

    sales_today = db.session.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_cents), 0),
    ).filter(Sale.occurred_at >= day_start, Sale.occurred_at <= day_end).one()

    pending_orders = db.session.query(func.count(PurchaseOrder.id)).filter(
        PurchaseOrder.status == ORDER_STATUS_PENDING
    ).scalar()
    pending_adjustments = db.session.query(func.count(Adjustment.id)).filter(
        Adjustment.status == ADJUSTMENT_STATUS_PENDING
    ).scalar()

    open_session = db.session.query(CashSession).filter(
        CashSession.status == SESSION_STATUS_OPEN
    ).order_by(CashSession.opened_at.desc()).first()

    return {
        "date": today.isoformat(),
        "products_active": len(products),
        "products_low_stock": len(low_stock),
        "products_out_of_stock": len(out_of_stock),
        "inventory_value_cents": inventory_value,
        "sales_today_count": int(sales_today[0] or 0),
        "sales_today_total_cents": int(sales_today[1] or 0),
        "pending_purchase_orders": int(pending_orders or 0),
        "pending_adjustments": int(pending_adjustments or 0),
        "open_cash_session_id": open_session.id if open_session else None,
        "low_stock_items": [
            {"id": p.id, "code": p.code, "name": p.name, "stock": p.stock, "min_stock": p.min_stock}
            for p in low_stock + out_of_stock
        ],
    }


def inventory_report(*, category: str | None = None, include_inactive: bool = False) -> dict:
    """
    Stock position per product, valued at sale price and at cost.

    Products without a cost contribute nothing to the cost valuation.
    """
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if category:
        q = q.filter(Product.category == category)
    products = q.order_by(Product.name.asc(), Product.id.asc()).all()

    rows = []
    by_status = {PRODUCT_STATUS_ACTIVE: 0, PRODUCT_STATUS_LOW_STOCK: 0, PRODUCT_STATUS_OUT_OF_STOCK: 0}
    total_units = 0
    total_value = 0
    total_cost = 0
    for product in products:
        stock = int(product.stock or 0)
        value = stock * int(product.price_cents or 0)
        cost = stock * product.cost_cents if product.cost_cents is not None else None
        total_units += stock
        total_value += value
        total_cost += cost or 0
        by_status[product.status] += 1
        rows.append({
            "product_id": product.id,
            "code": product.code,
            "name": product.name,
            "category": product.category,
            "stock": stock,
            "min_stock": product.min_stock,
            "status": product.status,
            "price_cents": product.price_cents,
            "cost_cents": product.cost_cents,
            "value_cents": value,
            "cost_value_cents": cost,
        })

    return {
        "generated_at": to_utc_z(utcnow()),
        "total_products": len(rows),
        "total_units": total_units,
        "total_value_cents": total_value,
        "total_cost_value_cents": total_cost,
        "by_status": by_status,
        "rows": rows,
    }


def sales_report(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    top: int = 10,
) -> dict:
    """Sales totals by day, by payment method, and the best-selling products."""
    filters = _range_filters(Sale.occurred_at, start, end)

    totals = db.session.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_cents), 0),
    ).filter(*filters).one()

    period_expr = func.date(Sale.occurred_at)
    by_day = db.session.query(
        period_expr.label("period"),
        func.count(Sale.id).label("sales_count"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("total_cents"),
    ).filter(*filters).group_by(period_expr).order_by(period_expr).all()

    by_method = db.session.query(
        Sale.payment_method,
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_cents), 0),
    ).filter(*filters).group_by(Sale.payment_method).order_by(Sale.payment_method).all()

    units = func.sum(SaleItem.quantity)
    top_products = db.session.query(
        SaleItem.product_id,
        SaleItem.product_code,
        SaleItem.product_name,
        units.label("units"),
        func.sum(SaleItem.subtotal_cents).label("revenue_cents"),
    ).join(Sale, SaleItem.sale_id == Sale.id).filter(*filters).group_by(
        SaleItem.product_id, SaleItem.product_code, SaleItem.product_name
    ).order_by(units.desc(), SaleItem.product_id).limit(top).all()

    sales_count = int(totals[0] or 0)
    total_cents = int(totals[1] or 0)
    return {
        "start": to_utc_z(start) if start else None,
        "end": to_utc_z(end) if end else None,
        "sales_count": sales_count,
        "total_cents": total_cents,
        "average_ticket_cents": total_cents // sales_count if sales_count else 0,
        "by_day": [
            {
                "period": str(row.period),
                "sales_count": int(row.sales_count or 0),
                "total_cents": int(row.total_cents or 0),
            }
            for row in by_day
        ],
        "by_payment_method": [
            {"payment_method": method, "sales_count": int(count or 0), "total_cents": int(amount or 0)}
            for method, count, amount in by_method
        ],
        "top_products": [
            {
                "product_id": row.product_id,
                "code": row.product_code,
                "name": row.product_name,
                "units": int(row.units or 0),
                "revenue_cents": int(row.revenue_cents or 0),
            }
            for row in top_products
        ],
    }


def purchase_report(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Purchase orders by status and by supplier, on order creation time."""
    filters = _range_filters(PurchaseOrder.created_at, start, end)

    by_status = db.session.query(
        PurchaseOrder.status,
        func.count(PurchaseOrder.id),
        func.coalesce(func.sum(PurchaseOrder.total_cents), 0),
    ).filter(*filters).group_by(PurchaseOrder.status).all()
    status_totals = {
        ORDER_STATUS_PENDING: {"count": 0, "total_cents": 0},
        ORDER_STATUS_RECEIVED: {"count": 0, "total_cents": 0},
    }
    for status, count, amount in by_status:
        status_totals[status] = {"count": int(count or 0), "total_cents": int(amount or 0)}

    by_supplier = db.session.query(
        Supplier.id,
        Supplier.name,
        func.count(PurchaseOrder.id),
        func.coalesce(func.sum(PurchaseOrder.total_cents), 0),
    ).join(PurchaseOrder, PurchaseOrder.supplier_id == Supplier.id).filter(*filters).group_by(
        Supplier.id, Supplier.name
    ).order_by(func.sum(PurchaseOrder.total_cents).desc()).all()

    return {
        "start": to_utc_z(start) if start else None,
        "end": to_utc_z(end) if end else None,
        "order_count": sum(v["count"] for v in status_totals.values()),
        "total_cents": sum(v["total_cents"] for v in status_totals.values()),
        "by_status": status_totals,
        "by_supplier": [
            {
                "supplier_id": supplier_id,
                "supplier_name": name,
                "order_count": int(count or 0),
                "total_cents": int(amount or 0),
            }
            for supplier_id, name, count, amount in by_supplier
        ],
    }
