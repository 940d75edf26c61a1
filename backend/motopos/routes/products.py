# backend/motopos/routes/products.py
"""
Products API Routes

MULTI-TENANT: Every lookup is scoped to g.tenant_id; a product of another
tenant answers 404 exactly like a missing one.
"""

from flask import Blueprint, request, jsonify

from ..services import products_service, stock_service
from ..decorators import require_auth
from .errors import error_response, json_body


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Request body:
    {"sku": "FR-001", "name": "Pastillas de freno", "category_id": 1, "barcode": "...",
     "cost_price": "12000", "sale_price": "18000", "stock": 10, "min_stock": 5,
     "brand": "...", "model": "...", "year": "...", "location": "..."}
    """
    try:
        data = json_body()
        product = products_service.create_product(data)
    except Exception as e:
        return error_response(e, "create product")
    return jsonify({"product": product.to_dict()}), 201


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Query params:
    - search: matches name, SKU, barcode, brand
    - page: 1-indexed page (default 1)
    - limit: page size (default DEFAULT_PAGE_SIZE)
    """
    page = request.args.get("page", default=1, type=int)
    limit = request.args.get("limit", type=int)
    try:
        result = products_service.list_products(
            search=request.args.get("search"),
            page=page,
            limit=max(1, min(limit, 200)) if limit else None,
        )
    except Exception as e:
        return error_response(e, "list products")
    return jsonify({
        "products": [p.to_dict() for p in result["products"]],
        "total": result["total"],
        "total_pages": result["total_pages"],
        "current_page": result["current_page"],
    }), 200


@products_bp.get("/all")
@require_auth
def all_products_route():
    try:
        products = products_service.get_all_products(search=request.args.get("search"))
    except Exception as e:
        return error_response(e, "list all products")
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/low-stock")
@require_auth
def low_stock_route():
    try:
        products = products_service.get_low_stock_products()
    except Exception as e:
        return error_response(e, "list low stock products")
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/barcode/<code>")
@require_auth
def product_by_barcode_route(code: str):
    try:
        product = products_service.get_product_by_barcode(code)
    except Exception as e:
        return error_response(e, "look up barcode")
    return jsonify({"product": product.to_dict()}), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except Exception as e:
        return error_response(e, "load product")
    return jsonify({"product": product.to_dict()}), 200


@products_bp.patch("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    try:
        data = json_body()
        product = products_service.update_product(product_id, data)
    except Exception as e:
        return error_response(e, "update product")
    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("/<int:product_id>/stock")
@require_auth
def adjust_stock_route(product_id: int):
    """Request body: {"quantity": -2, "reason": "Conteo físico"}"""
    try:
        data = json_body()
        product = products_service.adjust_stock(product_id, data.get("quantity"), reason=data.get("reason"))
    except Exception as e:
        return error_response(e, "adjust stock")
    return jsonify({"product": product.to_dict()}), 200


@products_bp.get("/<int:product_id>/movements")
@require_auth
def stock_movements_route(product_id: int):
    """Most recent stock movements of one product (sales, purchases, receipts, adjustments)."""
    limit = request.args.get("limit", default=50, type=int)
    try:
        product = products_service.get_product(product_id)
        movements = stock_service.list_movements(product.tenant_id, product.id, limit=max(1, min(limit, 200)))
    except Exception as e:
        return error_response(e, "list stock movements")
    return jsonify({
        "product": product.to_dict(),
        "movements": [m.to_dict() for m in movements],
    }), 200
