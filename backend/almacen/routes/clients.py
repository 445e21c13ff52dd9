# Overview: Flask API routes for client operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..extensions import db
from ..models import Client
from ..services import catalog_service
from ..validation import ModelValidationPolicy, validate_payload
from ..decorators import require_auth

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "document_number", "phone", "email", "address", "is_active"},
    required_on_create={"name"},
)

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
def list_clients_route():
    result = catalog_service.list_clients(
        search=request.args.get("q"),
        include_inactive=request.args.get("include_inactive") in ("1", "true"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@clients_bp.post("")
@require_auth
def create_client_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)
        client = catalog_service.create_client(g.session_context, patch=patch)
        return jsonify(client.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<int:client_id>")
@require_auth
def get_client_route(client_id: int):
    try:
        return jsonify(catalog_service.get_client(client_id).to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@clients_bp.patch("/<int:client_id>")
@require_auth
def update_client_route(client_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=True)
        client = catalog_service.update_client(g.session_context, client_id, patch)
        return jsonify(client.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update client")
        return jsonify({"error": "Internal server error"}), 500
