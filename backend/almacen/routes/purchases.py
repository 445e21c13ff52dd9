# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

# backend/almacen/routes/purchases.py
"""
Purchase order routes (ordenes de compra).

Receiving is idempotent: a second POST /<id>/receive answers 409 with a
warning and leaves stock untouched.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError, ValidationError
from ..extensions import db
from ..services import purchase_service
from ..validation import coerce_date, coerce_int
from ..decorators import require_auth


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchase-orders")


def _parse_items(raw) -> list[dict]:
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")
    items = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object")
        items.append({
            "product_id": coerce_int(item.get("product_id"), "product_id"),
            "quantity": coerce_int(item.get("quantity"), "quantity"),
            "unit_cost_cents": coerce_int(item.get("unit_cost_cents"), "unit_cost_cents"),
        })
    return items


@purchases_bp.get("")
@require_auth
def list_orders_route():
    try:
        limit = min(request.args.get("limit", 200, type=int), 1000)
        offset = max(request.args.get("offset", 0, type=int), 0)
        rows, total = purchase_service.list_orders(
            status=request.args.get("status"),
            supplier_id=request.args.get("supplier_id", type=int),
            limit=limit,
            offset=offset,
        )
        return jsonify({"items": [o.to_dict() for o in rows], "count": len(rows), "total": total}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.post("")
@require_auth
def create_order_route():
    """
    Create a purchase order.

    Body: {"supplier_id", "items": [{"product_id", "quantity", "unit_cost_cents"}],
           "tax_cents"?, "expected_date"? (YYYY-MM-DD), "notes"?}
    """
    data = request.get_json(silent=True) or {}

    try:
        if "supplier_id" not in data:
            return jsonify({"error": "supplier_id required"}), 400

        order = purchase_service.create_order(
            g.session_context,
            supplier_id=coerce_int(data["supplier_id"], "supplier_id"),
            items=_parse_items(data.get("items")),
            tax_cents=coerce_int(data.get("tax_cents", 0) or 0, "tax_cents"),
            expected_date=coerce_date(data.get("expected_date"), "expected_date"),
            notes=data.get("notes"),
        )
        return jsonify(order.to_dict(include_items=True)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return jsonify(purchase_service.get_order(order_id).to_dict(include_items=True)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.post("/<int:order_id>/receive")
@require_auth
def receive_order_route(order_id: int):
    """Receive a Pendiente order: stock in, one movement per line."""
    try:
        order = purchase_service.receive_order(g.session_context, order_id)
        return jsonify(order.to_dict(include_items=True)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to receive purchase order")
        return jsonify({"error": "Internal server error"}), 500
