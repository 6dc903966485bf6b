# Overview: Flask API routes for store settings.

from flask import Blueprint, request, jsonify, g

from ..services import settings_service
from ..validation import ValidationError
from ..decorators import require_auth, require_role


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def get_settings_route():
    """Any signed-in user may read settings (currency, tax rate, company info)."""
    settings = settings_service.get_settings()
    return jsonify({"settings": settings.to_dict()}), 200


@settings_bp.put("")
@require_auth
@require_role("admin")
def update_settings_route():
    try:
        settings = settings_service.update_settings(request.get_json(silent=True) or {}, g.current_user.id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"settings": settings.to_dict(), "message": "Settings updated successfully"}), 200


@settings_bp.get("/currencies")
def list_currencies_route():
    """Supported currencies with symbol and display locale. No sign-in needed."""
    return jsonify({"currencies": settings_service.list_currencies()}), 200


@settings_bp.post("/reset")
@require_auth
@require_role("admin")
def reset_settings_route():
    settings = settings_service.reset_settings(g.current_user.id)
    return jsonify({"settings": settings.to_dict(), "message": "Settings reset to default values"}), 200
