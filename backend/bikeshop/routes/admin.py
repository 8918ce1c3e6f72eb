# Overview: Flask API routes for staff administration: roles and capability overrides.

"""
Admin routes for staff management.

Provides endpoints for:
- Listing users
- Changing a user's role and activating/deactivating accounts
- Granting or denying individual capabilities (staff permissions)

All endpoints require authentication and MANAGE_STAFF, which only admins hold.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..models import User
from ..permissions import (
    CAPABILITY_DEFINITIONS,
    Capability,
    get_all_capability_codes,
    get_capabilities_by_category,
    get_capability_definition,
)
from ..services import permission_service, user_service
from ..services.user_service import UserError
from ..validation import NotFoundError
from ..decorators import require_auth, require_capability


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _user_with_capabilities(user: User) -> dict:
    data = user.to_dict()
    data["capabilities"] = sorted(c.value for c in permission_service.get_user_capabilities(user.id))
    return data


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_capability(Capability.MANAGE_STAFF)
def list_users():
    """
    List users with their effective capabilities.

    Query params:
    - q: name/email/phone search
    - role: "user" or "admin"
    """
    users = user_service.list_users(search=request.args.get("q"), role=request.args.get("role"))
    result = [_user_with_capabilities(u) for u in users]
    return jsonify({"users": result, "count": len(result)})


@admin_bp.post("/users/<user_id>/role")
@require_auth
@require_capability(Capability.MANAGE_STAFF)
def set_user_role(user_id: str):
    """
    Request body:
    - role: "user" or "admin" (required)
    """
    data = request.get_json(silent=True) or {}
    role = data.get("role")
    if not role:
        return jsonify({"error": "role required"}), 400

    try:
        user = user_service.change_role(user_id, role, actor_id=g.current_user.id)
        return jsonify({"user": _user_with_capabilities(user)})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change role of user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users/<user_id>/deactivate")
@require_auth
@require_capability(Capability.MANAGE_STAFF)
def deactivate_user(user_id: str):
    """Deactivate an account and sign it out everywhere."""
    try:
        user = user_service.set_active(user_id, False, actor_id=g.current_user.id)
        return jsonify({"user": user.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except UserError as e:
        return jsonify({"error": str(e)}), 400


@admin_bp.post("/users/<user_id>/reactivate")
@require_auth
@require_capability(Capability.MANAGE_STAFF)
def reactivate_user(user_id: str):
    try:
        user = user_service.set_active(user_id, True, actor_id=g.current_user.id)
        return jsonify({"user": user.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except UserError as e:
        return jsonify({"error": str(e)}), 400


# =============================================================================
# CAPABILITIES
# =============================================================================

@admin_bp.get("/capabilities")
@require_auth
@require_capability(Capability.MANAGE_STAFF)
def list_capabilities():
    """All capabilities grouped by category, plus which ones are protected."""
    categories = sorted({category for *_, category in CAPABILITY_DEFINITIONS})
    return jsonify({
        "capabilities": [get_capability_definition(code) for code in get_all_capability_codes()],
        "by_category": {
            category: [cap.value for cap, *_ in get_capabilities_by_category(category)]
            for category in categories
        },
        "protected": sorted(c.value for c in permission_service.PROTECTED_CAPABILITIES),
    })


@admin_bp.get("/users/<user_id>/capability-overrides")
@require_auth
@require_capability(Capability.MANAGE_STAFF)
def list_capability_overrides(user_id: str):
    if db.session.get(User, user_id) is None:
        return jsonify({"error": "User not found"}), 404
    overrides = permission_service.list_capability_overrides(user_id)
    return jsonify({"overrides": [o.to_dict() for o in overrides]})


@admin_bp.post("/users/<user_id>/capability-overrides")
@require_auth
@require_capability(Capability.MANAGE_STAFF)
def upsert_capability_override(user_id: str):
    """
    GRANT or DENY one capability for a user.

    Request body:
    - capability: str (required)
    - override_type: "GRANT" or "DENY" (required)
    - reason: str (optional)
    """
    if db.session.get(User, user_id) is None:
        return jsonify({"error": "User not found"}), 404

    data = request.get_json(silent=True) or {}
    capability = data.get("capability")
    override_type = data.get("override_type")
    if not capability or not override_type:
        return jsonify({"error": "capability and override_type are required"}), 400

    try:
        override = permission_service.set_capability_override(
            user_id=user_id,
            capability=capability,
            override_type=override_type,
            granted_by_user_id=g.current_user.id,
            reason=data.get("reason"),
        )
        return jsonify({"override": override.to_dict()}), 201
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@admin_bp.delete("/users/<user_id>/capability-overrides/<capability>")
@require_auth
@require_capability(Capability.MANAGE_STAFF)
def clear_capability_override(user_id: str, capability: str):
    """Return the user to the role default for this capability."""
    try:
        cleared = permission_service.clear_capability_override(user_id=user_id, capability=capability)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if not cleared:
        return jsonify({"error": "Override not found"}), 404
    return jsonify({"message": "Override cleared"})
