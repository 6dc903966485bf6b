# Overview: Flask API routes for login, sessions and staff management.

# backend/partspos/routes/auth.py
"""
Authentication and staff management API routes.

Accounts are created by administrators only (POST /api/auth/register)
or from the CLI (flask users create).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..validation import ConflictError, NotFoundError, ValidationError
from ..decorators import require_auth, require_role


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

PROFILE_FIELDS = {"first_name", "last_name", "email", "phone"}
STAFF_FIELDS = {"username", "email", "first_name", "last_name", "phone", "role", "is_active"}


def _split_full_name(data: dict) -> dict:
    """Accept full_name as a shortcut for first_name/last_name."""
    full_name = (data.get("full_name") or "").strip()
    if full_name and not (data.get("first_name") or data.get("last_name")):
        first, _, last = full_name.partition(" ")
        data = dict(data, first_name=first, last_name=last.strip() or first)
    return data


def _user_patch(data: dict, allowed: set[str]) -> dict:
    unknown = sorted(k for k in data if k not in allowed and k != "full_name")
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")
    patch = {}
    for k in allowed:
        if k not in data:
            continue
        v = data[k]
        if k == "is_active":
            if not isinstance(v, bool):
                raise ValidationError("is_active must be a boolean")
            patch[k] = v
        else:
            v = (v or "").strip() if isinstance(v, str) or v is None else str(v)
            if k in {"username", "email", "first_name", "last_name"} and not v:
                raise ValidationError(f"{k} cannot be blank")
            if k == "phone":
                v = v or None
            patch[k] = v
    return patch


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by username or email and create a session token.

    The token must be sent as "Authorization: Bearer <token>".
    """
    try:
        data = request.get_json(silent=True) or {}
        login = data.get("username") or data.get("email") or data.get("identifier")
        password = data.get("password")

        if not all([login, password]):
            return jsonify({"error": "Email/username and password are required"}), 400

        user = auth_service.authenticate(login, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": session.expires_at.isoformat() + "Z",
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token, reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    """Users may edit their own name, email and phone, nothing else."""
    try:
        patch = _user_patch(_split_full_name(request.get_json(silent=True) or {}), PROFILE_FIELDS)
        user = auth_service.update_user(g.current_user.id, patch, actor_user_id=g.current_user.id)
        return jsonify({"user": user.to_dict(), "message": "Profile updated successfully"}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    data = request.get_json(silent=True) or {}
    try:
        auth_service.change_password(g.current_user, data.get("current_password"), data.get("new_password"))
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400

    # Other devices must sign in again
    session_service.revoke_all_user_sessions(g.current_user.id, reason="Password changed")
    return jsonify({"message": "Password changed successfully"}), 200


# -------------------------
# Staff management (admin)
# -------------------------

@auth_bp.get("/staff")
@require_auth
@require_role("admin")
def list_staff_route():
    role = request.args.get("role")
    users = auth_service.list_users(role=role)
    return jsonify({"staff": [u.to_dict() for u in users], "count": len(users)}), 200


@auth_bp.get("/users")
@require_auth
@require_role("admin")
def search_users_route():
    """Active accounts, paginated. Query params: page, limit, role, search."""
    try:
        result = auth_service.search_users(
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            role=request.args.get("role") or None,
            search=request.args.get("search"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "users": [u.to_dict() for u in result["users"]],
        "pagination": result["pagination"],
    }), 200


@auth_bp.post("/register")
@require_auth
@require_role("admin")
def register_staff_route():
    data = _split_full_name(request.get_json(silent=True) or {})
    try:
        user = auth_service.create_user(
            username=data.get("username") or (data.get("email") or "").split("@")[0],
            email=data.get("email"),
            password=data.get("password") or "",
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            role=data.get("role") or "staff",
            phone=data.get("phone"),
            created_by_user_id=g.current_user.id,
        )
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"user": user.to_dict(), "message": "Staff member registered successfully"}), 201


@auth_bp.put("/staff/<int:user_id>")
@require_auth
@require_role("admin")
def update_staff_route(user_id: int):
    try:
        data = _split_full_name(request.get_json(silent=True) or {})
        password = data.pop("password", None)
        if password:
            auth_service.validate_password_strength(password)
        patch = _user_patch(data, STAFF_FIELDS)
        user = auth_service.update_user(user_id, patch, actor_user_id=g.current_user.id)
        if password:
            auth_service.reset_password(user.id, password)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"user": user.to_dict(), "message": "Staff member updated successfully"}), 200


@auth_bp.delete("/staff/<int:user_id>")
@require_auth
@require_role("admin")
def delete_staff_route(user_id: int):
    """Deactivates the account. Sales rung up by it stay attributable."""
    try:
        auth_service.set_user_active(user_id, False, actor_user_id=g.current_user.id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Staff member deactivated successfully"}), 200


@auth_bp.put("/users/<int:user_id>/toggle-status")
@require_auth
@require_role("admin")
def toggle_status_route(user_id: int):
    try:
        user = auth_service.toggle_user_status(user_id, actor_user_id=g.current_user.id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    state = "activated" if user.is_active else "deactivated"
    return jsonify({"user": user.to_dict(), "message": f"User {state} successfully"}), 200
