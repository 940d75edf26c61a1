# Overview: Maps service exceptions to JSON error responses.

from flask import jsonify, current_app, request

from ..validation import ConflictError, NotFoundError, ValidationError
from ..services.tenant_service import TenantAccessError


def json_body() -> dict:
    """The request's JSON object, or {} when there is no body."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("El cuerpo de la solicitud debe ser un objeto JSON")
    return data


def error_response(exc: Exception, action: str):
    """
    NotFoundError -> 404, ConflictError -> 409, TenantAccessError -> 401,
    any other ValueError -> 400. Everything else is logged and becomes 500.

    Errors carrying a `details` dict (SaleError) include it in the body.
    """
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, TenantAccessError):
        return jsonify({"error": str(exc)}), 401
    if isinstance(exc, ValueError):
        body = {"error": str(exc)}
        details = getattr(exc, "details", None)
        if details:
            body["details"] = details
        return jsonify(body), 400

    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Error interno del servidor"}), 500
