# Overview: Flask API routes for a user's own profile.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import user_service
from ..services.access_policy import AccessDeniedError
from ..services.user_service import UserError
from ..validation import ConflictError, NotFoundError


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/<user_id>")
@require_auth
def get_user_route(user_id: str):
    """Only the user themselves may read their record."""
    try:
        user = user_service.get_profile(user_id, requester=g.requester)
        return jsonify(user.to_dict())
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@users_bp.patch("/<user_id>")
@require_auth
def update_user_route(user_id: str):
    """
    Update own profile.

    Request body (all optional): name, email, phone
    """
    payload = request.get_json(silent=True) or {}
    try:
        user = user_service.update_profile(user_id, patch=payload, requester=g.requester)
        return jsonify(user.to_dict())
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except UserError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500
