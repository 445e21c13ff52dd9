# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/almacen/routes/sales.py
"""Sales API routes (POS checkout)"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..extensions import db
from ..models.sales import PAYMENT_CASH
from ..services import sales_service
from ..validation import coerce_datetime, coerce_int
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def checkout_route():
    """
    Checkout a cart.

    Body: {"client_id", "items": [{"product_id", "quantity"}],
           "payment_method"?: Efectivo | Tarjeta | Transferencia}

    409 with details when any line exceeds stock; nothing is written then.
    """
    data = request.get_json(silent=True) or {}

    try:
        if "client_id" not in data:
            return jsonify({"error": "client_id required"}), 400

        sale = sales_service.checkout(
            g.session_context,
            client_id=coerce_int(data["client_id"], "client_id"),
            cart=data.get("items") or [],
            payment_method=data.get("payment_method") or PAYMENT_CASH,
        )
        return jsonify(sale.to_dict(include_items=True)), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to checkout sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params: start, end (ISO-8601, inclusive), client_id,
    payment_method, limit (default 200, max 1000), offset.
    """
    try:
        limit = min(request.args.get("limit", 200, type=int), 1000)
        offset = max(request.args.get("offset", 0, type=int), 0)
        rows, total = sales_service.list_sales(
            start=coerce_datetime(request.args.get("start"), "start"),
            end=coerce_datetime(request.args.get("end"), "end"),
            client_id=request.args.get("client_id", type=int),
            payment_method=request.args.get("payment_method"),
            limit=limit,
            offset=offset,
        )
        return jsonify({"items": [s.to_dict() for s in rows], "count": len(rows), "total": total}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    """Get sale with lines."""
    try:
        return jsonify(sales_service.get_sale(sale_id).to_dict(include_items=True)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
