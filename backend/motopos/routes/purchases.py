# Overview: Flask API routes for supplier purchases.

from flask import Blueprint, request, jsonify

from ..services import purchase_service
from ..decorators import require_auth
from ..validation import money_str
from .errors import error_response, json_body


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_auth
def create_purchase_route():
    """
    Record a purchase; stock and cost prices are updated immediately.

    Request body:
    {
        "supplier_id": 2,                      (optional)
        "purchase_number": "FAC-1234",
        "purchase_date": "2026-03-01",         (optional, defaults to now)
        "items": [{"product_id": 1, "quantity": 10, "unit_cost": "8000.00"}],
        "tax": "0", "notes": "..."
    }
    """
    try:
        data = json_body()
        purchase = purchase_service.create_purchase(data)
    except Exception as e:
        return error_response(e, "create purchase")
    return jsonify({"purchase": purchase.to_dict()}), 201


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    limit = request.args.get("limit", default=50, type=int)
    try:
        purchases = purchase_service.list_purchases(limit=max(1, min(limit, 200)))
    except Exception as e:
        return error_response(e, "list purchases")
    return jsonify({"purchases": [p.to_dict(include_items=False) for p in purchases]}), 200


@purchases_bp.get("/today")
@require_auth
def today_purchases_route():
    try:
        result = purchase_service.get_today_purchases()
    except Exception as e:
        return error_response(e, "load today's purchases")
    return jsonify({
        "purchases": [p.to_dict(include_items=False) for p in result["purchases"]],
        "total": money_str(result["total"]),
        "count": result["count"],
    }), 200


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
    except Exception as e:
        return error_response(e, "load purchase")
    return jsonify({"purchase": purchase.to_dict()}), 200
