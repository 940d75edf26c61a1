# Overview: Flask API routes for product categories, customers and suppliers.

from flask import Blueprint, request, jsonify

from ..services import products_service, customer_service, vendor_service
from ..decorators import require_auth
from .errors import error_response, json_body


catalogs_bp = Blueprint("catalogs", __name__, url_prefix="/api")


# =============================================================================
# PRODUCT CATEGORIES
# =============================================================================

@catalogs_bp.get("/categories")
@require_auth
def list_categories_route():
    try:
        categories = products_service.list_categories()
    except Exception as e:
        return error_response(e, "list categories")
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@catalogs_bp.post("/categories")
@require_auth
def create_category_route():
    try:
        data = json_body()
        category = products_service.create_category(data.get("name"))
    except Exception as e:
        return error_response(e, "create category")
    return jsonify({"category": category.to_dict()}), 201


# =============================================================================
# CUSTOMERS
# =============================================================================

@catalogs_bp.get("/customers")
@require_auth
def list_customers_route():
    try:
        customers = customer_service.list_customers(search=request.args.get("search"))
    except Exception as e:
        return error_response(e, "list customers")
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@catalogs_bp.post("/customers")
@require_auth
def create_customer_route():
    try:
        data = json_body()
        customer = customer_service.create_customer(data)
    except Exception as e:
        return error_response(e, "create customer")
    return jsonify({"customer": customer.to_dict()}), 201


@catalogs_bp.get("/customers/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        result = customer_service.get_customer(customer_id)
    except Exception as e:
        return error_response(e, "load customer")
    return jsonify({
        "customer": result["customer"].to_dict(),
        "recent_sales": [s.to_dict(include_items=False) for s in result["recent_sales"]],
    }), 200


@catalogs_bp.patch("/customers/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    try:
        data = json_body()
        customer = customer_service.update_customer(customer_id, data)
    except Exception as e:
        return error_response(e, "update customer")
    return jsonify({"customer": customer.to_dict()}), 200


# =============================================================================
# SUPPLIERS
# =============================================================================

@catalogs_bp.get("/suppliers")
@require_auth
def list_suppliers_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    try:
        suppliers = vendor_service.list_suppliers(
            search=request.args.get("search"), include_inactive=include_inactive,
        )
    except Exception as e:
        return error_response(e, "list suppliers")
    return jsonify({"suppliers": [s.to_dict() for s in suppliers]}), 200


@catalogs_bp.post("/suppliers")
@require_auth
def create_supplier_route():
    try:
        data = json_body()
        supplier = vendor_service.create_supplier(data)
    except Exception as e:
        return error_response(e, "create supplier")
    return jsonify({"supplier": supplier.to_dict()}), 201


@catalogs_bp.patch("/suppliers/<int:supplier_id>")
@require_auth
def update_supplier_route(supplier_id: int):
    try:
        data = json_body()
        supplier = vendor_service.update_supplier(supplier_id, data)
    except Exception as e:
        return error_response(e, "update supplier")
    return jsonify({"supplier": supplier.to_dict()}), 200
