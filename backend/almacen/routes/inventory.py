# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

# backend/almacen/routes/inventory.py
"""
Inventory ledger routes.

- GET  /api/inventory/movements: movement history (read-only; movements
  are written by sales, receipts, adjustments and opening entries)
- GET  /api/inventory/products/<id>/reconcile: stored stock vs ledger sum
- POST /api/inventory/products/<id>/recompute: rebuild stock from ledger
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..extensions import db
from ..services import ledger_service
from ..validation import coerce_datetime
from ..decorators import require_auth


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/movements")
@require_auth
def list_movements_route():
    """
    Query params:
    - product_id: int
    - kind: SALE_OUT | PURCHASE_IN | ADJUSTMENT_IN | ADJUSTMENT_OUT | OPENING_IN
    - type: Entrada | Salida
    - document: exact document number (VTA-..., COMP-..., AJ-...)
    - start, end: ISO-8601 datetimes (inclusive)
    - limit (default 200, max 1000), offset
    """
    try:
        limit = min(request.args.get("limit", 200, type=int), 1000)
        offset = max(request.args.get("offset", 0, type=int), 0)
        rows, total = ledger_service.list_movements(
            product_id=request.args.get("product_id", type=int),
            kind=request.args.get("kind"),
            movement_type=request.args.get("type"),
            document=request.args.get("document"),
            start=coerce_datetime(request.args.get("start"), "start"),
            end=coerce_datetime(request.args.get("end"), "end"),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "items": [m.to_dict() for m in rows],
            "count": len(rows),
            "total": total,
            "limit": limit,
            "offset": offset,
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/products/<int:product_id>/reconcile")
@require_auth
def reconcile_product_route(product_id: int):
    try:
        return jsonify(ledger_service.reconcile_product(product_id).to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.post("/products/<int:product_id>/recompute")
@require_auth
def recompute_product_route(product_id: int):
    """
    Rebuild stock from the ledger.

    Body: {"repair": true|false} (default true). With repair=false the
    result is reported without writing.
    """
    data = request.get_json(silent=True) or {}
    repair = data.get("repair", True)
    if not isinstance(repair, bool):
        return jsonify({"error": "repair must be a boolean"}), 400

    try:
        result = ledger_service.recompute_from_ledger(product_id, repair=repair)
        return jsonify(result.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to recompute stock")
        return jsonify({"error": "Internal server error"}), 500
