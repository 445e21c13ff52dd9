# Overview: Flask API routes for the cash register (caja); parses input and returns JSON responses.

# backend/almacen/routes/cash.py
"""
Cash session routes.

Totals in every response are recomputed from sales and manual movements
before they are returned; the stored rollup is only a cache.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..extensions import db
from ..services import cash_service
from ..validation import coerce_date, coerce_int
from ..decorators import require_auth


cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


@cash_bp.post("/sessions")
@require_auth
def open_session_route():
    """
    Open the caja for today.

    Body: {"opening_amount_cents", "notes"?}
    """
    data = request.get_json(silent=True) or {}

    try:
        if "opening_amount_cents" not in data:
            return jsonify({"error": "opening_amount_cents required"}), 400

        session = cash_service.open_session(
            g.session_context,
            opening_amount_cents=coerce_int(data["opening_amount_cents"], "opening_amount_cents"),
            notes=data.get("notes"),
        )
        return jsonify(session.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to open cash session")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("/sessions/current")
@require_auth
def current_session_route():
    """The open session with fresh totals; 404 when the caja is closed."""
    try:
        session = cash_service.get_current_session(g.session_context)
        if session is None:
            return jsonify({"error": "No cash session is open"}), 404
        return jsonify(session.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to load current cash session")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("/sessions")
@require_auth
def list_sessions_route():
    """
    Session history.

    Query params: start, end (YYYY-MM-DD business dates, inclusive), status.
    """
    try:
        sessions = cash_service.list_sessions(
            start=coerce_date(request.args.get("start"), "start"),
            end=coerce_date(request.args.get("end"), "end"),
            status=request.args.get("status"),
        )
        return jsonify({"items": [s.to_dict() for s in sessions], "count": len(sessions)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@cash_bp.get("/sessions/<int:session_id>")
@require_auth
def get_session_route(session_id: int):
    """Session with its transactions (sales and manual movements)."""
    try:
        session = cash_service.get_session(session_id)
        return jsonify({
            "session": session.to_dict(),
            "transactions": cash_service.list_session_transactions(session_id),
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to load cash session")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/sessions/<int:session_id>/movements")
@require_auth
def record_movement_route(session_id: int):
    """
    Record a manual Ingreso or Egreso.

    Body: {"kind": Ingreso|Egreso, "amount_cents", "payment_method",
           "description", "category"?, "receipt"?}
    """
    data = request.get_json(silent=True) or {}

    try:
        if "amount_cents" not in data:
            return jsonify({"error": "amount_cents required"}), 400

        movement = cash_service.record_manual_movement(
            g.session_context,
            kind=data.get("kind"),
            amount_cents=coerce_int(data["amount_cents"], "amount_cents"),
            payment_method=data.get("payment_method"),
            description=data.get("description"),
            category=data.get("category"),
            receipt=data.get("receipt"),
            session_id=session_id,
        )
        return jsonify(movement.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record manual cash movement")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/sessions/<int:session_id>/close")
@require_auth
def close_session_route(session_id: int):
    """
    Close the caja with the counted amount.

    Body: {"closing_amount_cents", "notes"?}
    """
    data = request.get_json(silent=True) or {}

    try:
        if "closing_amount_cents" not in data:
            return jsonify({"error": "closing_amount_cents required"}), 400

        session = cash_service.close_session(
            g.session_context,
            session_id,
            closing_amount_cents=coerce_int(data["closing_amount_cents"], "closing_amount_cents"),
            notes=data.get("notes"),
        )
        return jsonify(session.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to close cash session")
        return jsonify({"error": "Internal server error"}), 500
