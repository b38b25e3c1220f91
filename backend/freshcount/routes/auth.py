# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/freshcount/routes/auth.py
"""
Authentication and user administration routes.

SECURITY:
- Registration needs an admin token once any user exists, unless
  ALLOW_OPEN_REGISTRATION is set. The first account can always be created.
- Role changes and deletions are admin-only (MANAGE_USERS).
- Profile and password routes act on the caller only.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import bearer_token, require_auth, require_permission
from ..errors import FreshCountError
from ..permissions import get_role_permissions
from ..services import auth_service, token_service
from ..validation import json_object

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _registration_gate():
    """
    Return an error response tuple if the caller may not register users.

    Open when the user table is empty (bootstrap) or ALLOW_OPEN_REGISTRATION
    is set; otherwise the caller must present an admin token.
    """
    if current_app.config.get("ALLOW_OPEN_REGISTRATION") or auth_service.count_users() == 0:
        return None

    token = bearer_token()
    if token is None:
        return {"error": "Authentication required"}, 401

    context = token_service.validate_token(token)
    if context is None:
        return {"error": "Invalid or expired token"}, 401

    if not context.user.is_admin:
        current_app.logger.warning("Registration denied for user id=%s", context.user.id)
        return {"error": "Permission denied", "required_permission": "MANAGE_USERS"}, 403

    return None


@auth_bp.post("/register")
def register_route():
    """
    Create a user account.

    Body: {email, password, name, role}
    """
    denied = _registration_gate()
    if denied is not None:
        return denied

    try:
        data = json_object(request.get_json(silent=True))
        user = auth_service.register_user(
            email=data.get("email"),
            password=data.get("password"),
            name=data.get("name"),
            role=data.get("role"),
        )
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "User registered successfully", "user": user.to_dict()}, 201


@auth_bp.post("/login")
def login_route():
    """
    Verify credentials and issue a bearer token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = json_object(request.get_json(silent=True))
        user = auth_service.authenticate(data.get("email"), data.get("password"))
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return jsonify({
        "message": "Login successful",
        "token": token_service.issue_token(user),
        "user": user.to_dict(),
        "permissions": get_role_permissions(user.role),
    }), 200


@auth_bp.post("/validate")
@require_auth
def validate_route():
    """Check the caller's token and return the live user."""
    user = g.current_user
    return {
        "valid": True,
        "user": user.to_dict(),
        "permissions": get_role_permissions(user.role),
    }


@auth_bp.get("/users")
@require_auth
@require_permission("VIEW_USERS")
def list_users_route():
    users = auth_service.list_users()
    return {"users": [u.to_dict() for u in users], "count": len(users)}


@auth_bp.put("/users/<int:user_id>/role")
@require_auth
@require_permission("MANAGE_USERS")
def update_role_route(user_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        user = auth_service.update_role(user_id, data.get("role"))
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "User role updated successfully", "user": user.to_dict()}


@auth_bp.delete("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user_route(user_id: int):
    try:
        auth_service.delete_user(user_id, actor=g.current_user)
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "User deleted successfully"}


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    """
    Update the caller's own profile.

    Body may contain: name, email, phone, dob, avatar_url
    """
    try:
        data = json_object(request.get_json(silent=True))
        user = auth_service.update_profile(g.current_user, data)
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "Profile updated successfully", "user": user.to_dict()}


@auth_bp.put("/profile/password")
@require_auth
def change_password_route():
    try:
        data = json_object(request.get_json(silent=True))
        auth_service.change_password(
            g.current_user,
            data.get("current_password"),
            data.get("new_password"),
        )
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "Password updated successfully"}
