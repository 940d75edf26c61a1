# Overview: Flask API routes for signup, login and session handling.

from flask import Blueprint, jsonify, g

from ..services import auth_service, session_service, tenant_service
from ..decorators import require_auth, get_bearer_token
from .errors import error_response, json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Sign up a new business: creates the tenant and its first ADMIN user,
    and logs the user in.

    Request body: {"business_name", "name", "email", "password"}
    """
    try:
        data = json_body()
        tenant, user = tenant_service.register_business(
            business_name=data.get("business_name"),
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
        )
        _, token = session_service.create_session(user.id)
    except Exception as e:
        return error_response(e, "register business")

    return jsonify({"token": token, "user": user.to_dict(), "tenant": tenant.to_dict()}), 201


@auth_bp.post("/login")
def login_route():
    try:
        data = json_body()
    except Exception as e:
        return error_response(e, "log in")
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"error": "Email y contraseña son requeridos"}), 400

    try:
        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Credenciales inválidas"}), 401
        session, token = session_service.create_session(user.id)
    except Exception as e:
        return error_response(e, "log in")

    return jsonify({
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
        "user": user.to_dict(),
        "tenant": user.tenant.to_dict(),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(get_bearer_token())
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict(), "tenant": g.current_user.tenant.to_dict()}), 200
