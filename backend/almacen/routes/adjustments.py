# Overview: Flask API routes for stock adjustments; parses input and returns JSON responses.

# backend/almacen/routes/adjustments.py
"""
Adjustment routes (ajustes).

Proposal and resolution are separate calls; a proposal never moves
stock. Resolving an already resolved adjustment returns 409 with a
warning and changes nothing.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..extensions import db
from ..models.inventory import ADJUSTMENT_REASONS
from ..services import adjustment_service
from ..validation import coerce_int
from ..decorators import require_auth


adjustments_bp = Blueprint("adjustments", __name__, url_prefix="/api/adjustments")


@adjustments_bp.get("")
@require_auth
def list_adjustments_route():
    try:
        limit = min(request.args.get("limit", 200, type=int), 1000)
        offset = max(request.args.get("offset", 0, type=int), 0)
        rows, total = adjustment_service.list_adjustments(
            status=request.args.get("status"),
            product_id=request.args.get("product_id", type=int),
            limit=limit,
            offset=offset,
        )
        return jsonify({"items": [a.to_dict() for a in rows], "count": len(rows), "total": total}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@adjustments_bp.get("/reasons")
@require_auth
def list_reasons_route():
    return jsonify({"reasons": list(ADJUSTMENT_REASONS)}), 200


@adjustments_bp.post("")
@require_auth
def propose_adjustment_route():
    """
    Propose an adjustment.

    Body: {"product_id", "physical_stock", "reason", "notes"?}
    """
    data = request.get_json(silent=True) or {}

    try:
        if "product_id" not in data or "physical_stock" not in data or not data.get("reason"):
            return jsonify({"error": "product_id, physical_stock and reason required"}), 400

        adjustment = adjustment_service.propose_adjustment(
            g.session_context,
            product_id=coerce_int(data["product_id"], "product_id"),
            physical_stock=coerce_int(data["physical_stock"], "physical_stock"),
            reason=data["reason"],
            notes=data.get("notes"),
        )
        return jsonify(adjustment.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to propose adjustment")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.get("/<int:adjustment_id>")
@require_auth
def get_adjustment_route(adjustment_id: int):
    try:
        return jsonify(adjustment_service.get_adjustment(adjustment_id).to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@adjustments_bp.post("/<int:adjustment_id>/approve")
@require_auth
def approve_adjustment_route(adjustment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        adjustment = adjustment_service.approve_adjustment(
            g.session_context, adjustment_id, note=data.get("note")
        )
        return jsonify(adjustment.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve adjustment")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.post("/<int:adjustment_id>/reject")
@require_auth
def reject_adjustment_route(adjustment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        adjustment = adjustment_service.reject_adjustment(
            g.session_context, adjustment_id, note=data.get("note")
        )
        return jsonify(adjustment.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reject adjustment")
        return jsonify({"error": "Internal server error"}), 500
