# Overview: Flask API routes for ops authentication; parses input and returns JSON responses.

"""
Ops Authentication API routes

Staff sign in with email + password. The session token comes back in the
JSON body and as an HttpOnly cookie, so both API clients (Bearer header)
and the dashboard (cookie) can use it.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate a staff user and create a session token.
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400

        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400
        if not isinstance(email, str) or not isinstance(password, str):
            return jsonify({"error": "email and password must be strings"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        response = jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        })
        response.set_cookie(
            current_app.config.get("OPS_AUTH_COOKIE", "auth_token"),
            token,
            max_age=int(session_service.SESSION_ABSOLUTE_TIMEOUT.total_seconds()),
            httponly=True,
            secure=current_app.config.get("OPS_AUTH_COOKIE_SECURE", False),
            samesite="Lax",
        )
        return response, 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session and clear the cookie."""
    try:
        session_service.revoke_session(g.session_token, reason="User logout")

        response = jsonify({"message": "Logout successful"})
        response.delete_cookie(current_app.config.get("OPS_AUTH_COOKIE", "auth_token"))
        return response, 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
