# Overview: Flask API routes for reports; parses the date range and returns JSON.

# backend/motopos/routes/reports.py
"""
Reports API Routes

Query params: start, end (ISO-8601 date or datetime, inclusive). A bare
end date covers that whole day; missing bounds default to today.
"""

from decimal import Decimal

from flask import Blueprint, request, jsonify

from ..services import reporting_service
from ..decorators import require_auth
from ..models import Product
from ..validation import ValidationError, money_str
from motopos.time_utils import parse_range, to_utc_z
from .errors import error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _jsonable(value):
    if isinstance(value, Decimal):
        return money_str(value)
    if isinstance(value, Product):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def _range():
    try:
        start, end = parse_range(request.args.get("start"), request.args.get("end"))
    except ValueError:
        raise ValidationError("Rango de fechas inválido")
    if start > end:
        raise ValidationError("La fecha inicial debe ser anterior a la final")
    return start, end


def _with_range(report: dict, start, end) -> dict:
    body = _jsonable(report)
    body["start"] = to_utc_z(start)
    body["end"] = to_utc_z(end)
    return body


@reports_bp.get("/sales")
@require_auth
def sales_report_route():
    try:
        start, end = _range()
        report = reporting_service.sales_report(start, end)
    except Exception as e:
        return error_response(e, "build sales report")
    return jsonify(_with_range(report, start, end)), 200


@reports_bp.get("/expenses")
@require_auth
def expenses_report_route():
    try:
        start, end = _range()
        report = reporting_service.expenses_report(start, end)
    except Exception as e:
        return error_response(e, "build expenses report")
    return jsonify(_with_range(report, start, end)), 200


@reports_bp.get("/profit")
@require_auth
def profit_report_route():
    try:
        start, end = _range()
        report = reporting_service.profit_report(start, end)
    except Exception as e:
        return error_response(e, "build profit report")
    return jsonify(_with_range(report, start, end)), 200


@reports_bp.get("/inventory")
@require_auth
def inventory_report_route():
    try:
        report = reporting_service.inventory_report()
    except Exception as e:
        return error_response(e, "build inventory report")
    return jsonify(_jsonable(report)), 200
