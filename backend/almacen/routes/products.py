# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/almacen/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
Stock is read-only here; it changes only through sales, receipts,
adjustments and the opening entry (initial_stock on create).
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..extensions import db
from ..models import Product
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    coerce_int,
    enforce_rules_product,
    validate_payload,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "description", "category", "min_stock", "price_cents", "cost_cents", "is_active"},
    required_on_create={"code", "name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products with optional search, filters and pagination.

    Query params:
    - q: str (optional) - code or name substring
    - category: str (optional)
    - status: Activo | StockBajo | Agotado (optional)
    - include_inactive: 1 (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    try:
        result = catalog_service.list_products(
            search=request.args.get("q"),
            category=request.args.get("category"),
            status=request.args.get("status"),
            include_inactive=request.args.get("include_inactive") in ("1", "true"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a new product.

    Optional initial_stock registers opening stock through the ledger.
    """
    payload = dict(request.get_json(silent=True) or {})

    try:
        initial_stock = coerce_int(payload.pop("initial_stock", 0) or 0, "initial_stock")
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = catalog_service.create_product(g.session_context, patch=patch, initial_stock=initial_stock)
        return jsonify(product.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return jsonify(catalog_service.get_product(product_id).to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.patch("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """Update catalog fields. Sending stock is rejected."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = catalog_service.update_product(g.session_context, product_id, patch)
        return jsonify(product.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/deactivate")
@require_auth
def deactivate_product_route(product_id: int):
    """Soft-delete: products with history are never removed."""
    try:
        product = catalog_service.deactivate_product(g.session_context, product_id)
        return jsonify(product.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate product")
        return jsonify({"error": "Internal server error"}), 500
