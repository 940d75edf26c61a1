# Overview: Flask API routes for restock and customer orders.

# backend/motopos/routes/orders.py
"""
Orders API Routes

State machine: PENDING -> ORDERED -> PARTIAL -> RECEIVED -> DELIVERED,
CANCELLED from any open state. Receiving a RESTOCK order updates stock.
"""

from flask import Blueprint, request, jsonify

from ..services import order_service, products_service
from ..decorators import require_auth
from .errors import error_response, json_body


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Request body:
    {
        "type": "RESTOCK" | "CUSTOMER_ORDER",
        "customer_id": 4,                  (optional)
        "priority": "NORMAL",              (optional)
        "expected_date": "2026-03-10",     (optional)
        "notes": "...",
        "items": [{"product_id": 1, "quantity": 10, "unit_cost": "8000"},
                  {"product_name": "Kit arrastre AKT 125", "quantity": 1}]
    }
    """
    try:
        data = json_body()
        order = order_service.create_order(data)
    except Exception as e:
        return error_response(e, "create order")
    return jsonify({"order": order.to_dict(include_history=True)}), 201


@orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        orders = order_service.list_orders(
            order_type=request.args.get("type"),
            status=request.args.get("status"),
        )
    except Exception as e:
        return error_response(e, "list orders")
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/pending")
@require_auth
def pending_orders_route():
    try:
        pending = order_service.get_pending_orders()
    except Exception as e:
        return error_response(e, "load pending orders")
    return jsonify({
        "restock": [o.to_dict() for o in pending["restock"]],
        "customer_orders": [o.to_dict() for o in pending["customer_orders"]],
    }), 200


@orders_bp.get("/low-stock")
@require_auth
def low_stock_products_route():
    try:
        products = products_service.get_low_stock_products()
    except Exception as e:
        return error_response(e, "load low stock products")
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@orders_bp.post("/restock-from-low-stock")
@require_auth
def restock_from_low_stock_route():
    try:
        result = order_service.create_restock_order_from_low_stock()
    except Exception as e:
        return error_response(e, "create restock order")

    if not result["created"]:
        return jsonify(result), 200
    return jsonify({
        "created": True,
        "order": result["order"].to_dict(include_history=True),
        "items_count": result["items_count"],
    }), 201


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except Exception as e:
        return error_response(e, "load order")
    return jsonify({"order": order.to_dict(include_history=True)}), 200


@orders_bp.patch("/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    try:
        data = json_body()
        order = order_service.update_order(order_id, data)
    except Exception as e:
        return error_response(e, "update order")
    return jsonify({"order": order.to_dict(include_history=True)}), 200


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(order_id)
    except Exception as e:
        return error_response(e, "delete order")
    return jsonify({"ok": True}), 200


@orders_bp.post("/<int:order_id>/status")
@require_auth
def update_order_status_route(order_id: int):
    """Request body: {"status": "RECEIVED"}"""
    try:
        data = json_body()
        order = order_service.update_order_status(order_id, data.get("status"))
    except Exception as e:
        return error_response(e, "update order status")
    return jsonify({"order": order.to_dict(include_history=True)}), 200


@orders_bp.get("/<int:order_id>/history")
@require_auth
def order_history_route(order_id: int):
    try:
        history = order_service.get_order_history(order_id)
    except Exception as e:
        return error_response(e, "load order history")
    return jsonify({"history": [h.to_dict() for h in history]}), 200


@orders_bp.post("/<int:order_id>/items")
@require_auth
def add_order_item_route(order_id: int):
    try:
        data = json_body()
        item = order_service.add_item(order_id, data)
    except Exception as e:
        return error_response(e, "add order item")
    return jsonify({"item": item.to_dict()}), 201


@orders_bp.patch("/<int:order_id>/items/<int:item_id>")
@require_auth
def update_order_item_route(order_id: int, item_id: int):
    try:
        data = json_body()
        item = order_service.update_item(order_id, item_id, data)
    except Exception as e:
        return error_response(e, "update order item")
    return jsonify({"item": item.to_dict()}), 200


@orders_bp.delete("/<int:order_id>/items/<int:item_id>")
@require_auth
def remove_order_item_route(order_id: int, item_id: int):
    try:
        order_service.remove_item(order_id, item_id)
    except Exception as e:
        return error_response(e, "remove order item")
    return jsonify({"ok": True}), 200
