# Overview: Flask API routes for cash register (till) operations.

# backend/motopos/routes/registers.py
"""
Cash Register API Routes

Lifecycle: open -> close (immutable once closed). One OPEN register per
tenant; every sale attaches to it.
"""

from flask import Blueprint, request, jsonify

from ..services import register_service
from ..decorators import require_auth
from ..validation import money_str
from .errors import error_response, json_body


registers_bp = Blueprint("registers", __name__, url_prefix="/api/cash-registers")


def _by_method(totals: dict) -> dict:
    return {method: money_str(amount) for method, amount in totals.items()}


@registers_bp.post("/open")
@require_auth
def open_register_route():
    """
    Open the tenant's register.

    Request body: {"initial_amount": "100000.00", "notes": "..."}
    """
    try:
        data = json_body()
        register = register_service.open_register(data.get("initial_amount"), notes=data.get("notes"))
    except Exception as e:
        return error_response(e, "open cash register")
    return jsonify({"register": register.to_dict()}), 201


@registers_bp.post("/<int:register_id>/close")
@require_auth
def close_register_route(register_id: int):
    """
    Close a register with the counted amounts.

    Request body: {"cash_amount", "card_amount", "transfer_amount", "notes"}
    """
    try:
        data = json_body()
        result = register_service.close_register(
            register_id,
            data.get("cash_amount"),
            card_amount=data.get("card_amount"),
            transfer_amount=data.get("transfer_amount"),
            notes=data.get("notes"),
        )
    except Exception as e:
        return error_response(e, "close cash register")

    return jsonify({
        "register": result["register"].to_dict(),
        "cash_difference": money_str(result["cash_difference"]),
        "expected_cash": money_str(result["expected_cash"]),
        "total_sales": money_str(result["total_sales"]),
        "sales_by_method": _by_method(result["sales_by_method"]),
    }), 200


@registers_bp.get("/current")
@require_auth
def current_register_route():
    try:
        current = register_service.get_current_register()
    except Exception as e:
        return error_response(e, "load current cash register")

    if current is None:
        return jsonify({"register": None, "recent_sales": []}), 200
    return jsonify({
        "register": current["register"].to_dict(),
        "recent_sales": [s.to_dict(include_items=False) for s in current["recent_sales"]],
    }), 200


@registers_bp.get("/history")
@require_auth
def register_history_route():
    limit = request.args.get("limit", default=10, type=int)
    try:
        registers = register_service.get_register_history(limit=max(1, min(limit, 100)))
    except Exception as e:
        return error_response(e, "load cash register history")
    return jsonify({"registers": [r.to_dict() for r in registers]}), 200


@registers_bp.get("/<int:register_id>/summary")
@require_auth
def register_summary_route(register_id: int):
    try:
        summary = register_service.get_register_summary(register_id)
    except Exception as e:
        return error_response(e, "load cash register summary")

    return jsonify({
        "register": summary["register"].to_dict(),
        "sales_count": summary["sales_count"],
        "sales_by_method": _by_method(summary["sales_by_method"]),
        "total_sales": money_str(summary["total_sales"]),
        "expected_cash": money_str(summary["expected_cash"]),
        "total_expenses": money_str(summary["total_expenses"]),
        "net_cash": money_str(summary["net_cash"]),
        "expenses": [e.to_dict() for e in summary["expenses"]],
        "sales": [s.to_dict() for s in summary["sales"]],
    }), 200
