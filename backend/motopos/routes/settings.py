# Overview: Flask API routes for the business profile.

from flask import Blueprint, jsonify

from ..services import tenant_service
from ..decorators import require_auth, require_admin
from .errors import error_response, json_body


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def get_settings_route():
    try:
        tenant = tenant_service.get_business_settings()
    except Exception as e:
        return error_response(e, "load business settings")
    return jsonify({"settings": tenant.to_dict()}), 200


@settings_bp.put("")
@require_auth
@require_admin
def update_settings_route():
    """
    Request body: {"name", "email", "nit", "phone", "address", "city",
    "country", "website", "tax_regime"}. ADMIN only.
    """
    try:
        data = json_body()
        tenant = tenant_service.update_business_settings(data)
    except Exception as e:
        return error_response(e, "update business settings")
    return jsonify({"settings": tenant.to_dict()}), 200
