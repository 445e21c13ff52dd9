# Overview: Flask API routes for reports; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..errors import LedgerError
from ..services import reporting_service
from ..validation import coerce_date, coerce_datetime
from ..decorators import require_auth


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
def dashboard_route():
    try:
        today = coerce_date(request.args.get("date"), "date")
        return jsonify(reporting_service.dashboard_summary(today)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/inventory")
@require_auth
def inventory_report_route():
    return jsonify(reporting_service.inventory_report(
        category=request.args.get("category"),
        include_inactive=request.args.get("include_inactive") in ("1", "true"),
    )), 200


@reports_bp.get("/sales")
@require_auth
def sales_report_route():
    try:
        return jsonify(reporting_service.sales_report(
            start=coerce_datetime(request.args.get("start"), "start"),
            end=coerce_datetime(request.args.get("end"), "end"),
            top=min(request.args.get("top", 10, type=int), 100),
        )), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/purchases")
@require_auth
def purchase_report_route():
    try:
        return jsonify(reporting_service.purchase_report(
            start=coerce_datetime(request.args.get("start"), "start"),
            end=coerce_datetime(request.args.get("end"), "end"),
        )), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
