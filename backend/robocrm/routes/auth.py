# Overview: Flask API routes for login, logout and user administration.

from flask import Blueprint, g, jsonify, request

from ..decorators import current_user_id, require_auth, require_role
from ..errors import error_response
from ..models.auth import ROLE_ADMIN
from ..services import auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    user = auth_service.authenticate(email, password)
    if not user:
        return jsonify({"error": "Invalid credentials"}), 401

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({"user": user.to_dict(), "token": token, "expires_at": session.to_dict()["expires_at"]})


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers["Authorization"].split(" ", 1)[1].strip()
    session_service.revoke_session(token)
    return jsonify({"message": "Logged out"})


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()})


@auth_bp.get("/users")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    return jsonify({"items": [u.to_dict() for u in auth_service.list_users()]})


@auth_bp.post("/users")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            data.get("email"),
            data.get("password") or "",
            full_name=data.get("full_name"),
            role=data.get("role") or "salesperson",
        )
    except Exception as e:
        return error_response(e, "Create user")
    return jsonify({"user": user.to_dict()}), 201


@auth_bp.patch("/users/<int:user_id>/role")
@require_auth
@require_role(ROLE_ADMIN)
def set_role_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.set_role(user_id, data.get("role"))
    except Exception as e:
        return error_response(e, "Update role")
    return jsonify({"user": user.to_dict()})


@auth_bp.post("/users/<int:user_id>/deactivate")
@require_auth
@require_role(ROLE_ADMIN)
def deactivate_user_route(user_id: int):
    try:
        user, revoked = auth_service.deactivate_user(user_id, acting_user_id=current_user_id())
    except Exception as e:
        return error_response(e, "Deactivate user")
    return jsonify({"user": user.to_dict(), "revoked_sessions": revoked})
