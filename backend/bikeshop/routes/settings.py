# Overview: Flask API routes for business settings; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_auth
from ..services import settings_service
from ..services.permission_service import CapabilityDeniedError
from ..services.settings_service import SettingsError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


def _json_error(exc: Exception):
    if isinstance(exc, SettingsError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, CapabilityDeniedError):
        return jsonify({"error": "Permission denied", "message": str(exc)}), 403
    current_app.logger.exception("Failed to update settings")
    return jsonify({"error": "Internal server error"}), 500


@settings_bp.get("")
@require_auth
def get_settings_route():
    """Any signed-in user may read the shop settings (the UI needs toggles and theme)."""
    return jsonify(settings_service.get_settings().to_dict())


@settings_bp.patch("/business")
@require_auth
def update_business_route():
    """
    Business details, photos and feature toggles.

    Request body (all optional): name, email, phone, mobile, address, logo,
    notes, photos, features {"sales": bool, "jobs": bool}
    """
    payload = request.get_json(silent=True) or {}
    try:
        settings = settings_service.update_business_info(patch=payload, user_id=g.current_user.id)
        return jsonify(settings.to_dict())
    except Exception as e:
        return _json_error(e)


@settings_bp.put("/opening-hours")
@require_auth
def update_opening_hours_route():
    """Body: {"monday": {"open": "09:00", "close": "17:00", "closed": false}, ...}"""
    payload = request.get_json(silent=True) or {}
    try:
        settings = settings_service.update_opening_hours(hours=payload, user_id=g.current_user.id)
        return jsonify(settings.to_dict())
    except Exception as e:
        return _json_error(e)


@settings_bp.put("/bike-options")
@require_auth
def update_bike_options_route():
    """Body: {"brands": [...], "colors": [...], "sizes": [...]}"""
    payload = request.get_json(silent=True) or {}
    try:
        settings = settings_service.update_bike_options(options=payload, user_id=g.current_user.id)
        return jsonify(settings.to_dict())
    except Exception as e:
        return _json_error(e)


@settings_bp.put("/theme")
@require_auth
def update_theme_route():
    """Body: {"primary": "#rrggbb"}"""
    payload = request.get_json(silent=True) or {}
    try:
        settings = settings_service.update_theme(theme=payload, user_id=g.current_user.id)
        return jsonify(settings.to_dict())
    except Exception as e:
        return _json_error(e)
