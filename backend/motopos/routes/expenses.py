# Overview: Flask API routes for expenses and expense categories.

from flask import Blueprint, request, jsonify

from ..services import expense_service
from ..decorators import require_auth
from ..validation import money_str
from .errors import error_response, json_body


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


def _summary_body(result: dict) -> dict:
    return {
        "expenses": [e.to_dict() for e in result["expenses"]],
        "total": money_str(result["total"]),
        "count": result["count"],
    }


@expenses_bp.post("")
@require_auth
def create_expense_route():
    """
    Request body:
    {"amount": "250000", "description": "Arriendo marzo", "category_id": 1,
     "expense_date": "2026-03-01", "payment_method": "TRANSFER", "reference": "...", "notes": "..."}
    """
    try:
        data = json_body()
        expense = expense_service.create_expense(data)
    except Exception as e:
        return error_response(e, "create expense")
    return jsonify({"expense": expense.to_dict()}), 201


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    limit = request.args.get("limit", default=50, type=int)
    try:
        expenses = expense_service.list_expenses(limit=max(1, min(limit, 200)))
    except Exception as e:
        return error_response(e, "list expenses")
    return jsonify({"expenses": [e.to_dict() for e in expenses]}), 200


@expenses_bp.get("/today")
@require_auth
def today_expenses_route():
    try:
        result = expense_service.get_today_expenses()
    except Exception as e:
        return error_response(e, "load today's expenses")
    return jsonify(_summary_body(result)), 200


@expenses_bp.get("/range")
@require_auth
def expenses_range_route():
    try:
        result = expense_service.get_expenses_by_date_range(
            request.args.get("start"), request.args.get("end"),
        )
    except Exception as e:
        return error_response(e, "load expenses by range")
    return jsonify(_summary_body(result)), 200


@expenses_bp.get("/categories")
@require_auth
def list_expense_categories_route():
    try:
        categories = expense_service.list_categories()
    except Exception as e:
        return error_response(e, "list expense categories")
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@expenses_bp.post("/categories")
@require_auth
def create_expense_category_route():
    try:
        data = json_body()
        category = expense_service.create_category(data.get("name"))
    except Exception as e:
        return error_response(e, "create expense category")
    return jsonify({"category": category.to_dict()}), 201


@expenses_bp.get("/categories/defaults")
@require_auth
def default_expense_categories_route():
    return jsonify({"categories": expense_service.get_default_categories()}), 200
