# Overview: Flask API routes for sales; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import sales_service
from ..decorators import require_auth
from ..validation import money_str
from .errors import error_response, json_body


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Post a sale to the open register.

    Request body:
    {
        "customer_id": 3,                      (optional)
        "items": [{"product_id": 1, "quantity": 2, "unit_price": "15000.00", "discount": "0"}],
        "discount": "0", "tax": "0",
        "payment_method": "CASH",
        "notes": "..."
    }
    """
    try:
        data = json_body()
        sale = sales_service.create_sale(data)
    except Exception as e:
        return error_response(e, "create sale")
    return jsonify({"sale": sale.to_dict()}), 201


@sales_bp.get("")
@require_auth
def list_sales_route():
    page = request.args.get("page", default=1, type=int)
    limit = request.args.get("limit", type=int)
    try:
        result = sales_service.list_sales(page=page, limit=limit)
    except Exception as e:
        return error_response(e, "list sales")
    return jsonify({
        "sales": [s.to_dict(include_items=False) for s in result["sales"]],
        "total": result["total"],
        "total_pages": result["total_pages"],
        "current_page": result["current_page"],
    }), 200


@sales_bp.get("/today")
@require_auth
def today_sales_route():
    try:
        result = sales_service.get_today_sales()
    except Exception as e:
        return error_response(e, "load today's sales")
    return jsonify({
        "sales": [s.to_dict(include_items=False) for s in result["sales"]],
        "total": money_str(result["total"]),
        "count": result["count"],
    }), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except Exception as e:
        return error_response(e, "load sale")
    return jsonify({"sale": sale.to_dict()}), 200
