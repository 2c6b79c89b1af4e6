# Overview: Request decorators for ops API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service


def _extract_token() -> str | None:
    """Bearer header first, then the ops session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None

    cookie_name = current_app.config.get("OPS_AUTH_COOKIE", "auth_token")
    return request.cookies.get(cookie_name) or None


def require_auth(f):
    """
    Require a valid ops session.

    Sets:
    - g.current_user: the authenticated User
    - g.session_context: the SessionContext

    Returns 401 when no token is presented or it does not resolve to an
    active session.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _extract_token()
        if not token:
            return jsonify({"error": "Unauthorized"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Unauthorized"}), 401

        g.current_user = context.user
        g.session_context = context
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_ops_role(f):
    """
    Require an OPS or ADMIN user. Must be stacked under @require_auth.

    Returns 403 for authenticated users without an ops role (VIEWER).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, "current_user", None)
        if user is None:
            return jsonify({"error": "Unauthorized"}), 401

        if not user.is_ops:
            return jsonify({"error": "Forbidden"}), 403

        return f(*args, **kwargs)

    return decorated_function
