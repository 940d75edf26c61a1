# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


UNAUTHORIZED = {"error": "No autorizado"}


def get_bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.tenant_id: The tenant captured by the session at login
    - g.session_context: The full SessionContext object

    Returns 401 {"error": "No autorizado"} when there is no bearer token or
    it does not resolve to an active session.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_bearer_token()
        if not token:
            return jsonify(UNAUTHORIZED), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify(UNAUTHORIZED), 401

        g.current_user = context.user
        g.tenant_id = context.tenant_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require @require_auth first; then the user must have role ADMIN."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, "current_user", None)
        if user is None:
            return jsonify(UNAUTHORIZED), 401
        if user.role != "ADMIN":
            return jsonify({"error": "Permiso denegado"}), 403
        return f(*args, **kwargs)

    return decorated_function
