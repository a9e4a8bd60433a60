# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/retail_billing/routes/auth.py
"""
Authentication API routes

- Login returns a bearer token (only its SHA-256 hash is stored)
- Logout revokes the presented token
- /me returns the authenticated user
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({
                "error": "username/email and password required",
                "code": "VALIDATION_ERROR",
                "errors": [
                    {"field": key, "message": f"{key} is required"}
                    for key, value in (("username", username), ("password", password))
                    if not value
                ],
            }), 400

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.info("Failed login for %s from %s", username, request.remote_addr)
            return jsonify({"error": "Invalid credentials", "code": "UNAUTHORIZED"}), 401

        session, token = session_service.create_session(
            user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": session.expires_at.isoformat() + "Z",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(bearer_token())
        return jsonify({"message": "Logged out"}), 200
    except Exception:
        current_app.logger.exception("Failed to log out")
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
