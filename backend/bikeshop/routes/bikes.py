# Overview: Flask API routes for bike inventory, status changes and self-purchase.

"""
Bike inventory routes.

SECURITY: All routes require authentication and every operation goes through
the access policy:
- Anyone signed in reads available bikes and the bikes they own
- Only admins create bikes
- Owners (and admins) update, delete or change status
- Mutations additionally require the MANAGE_BIKES capability

A denial always answers 403 with the same generic message.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Bike
from ..permissions import Capability
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
    enforce_rules_bike,
)
from ..decorators import require_auth, require_capability
from ..services import bike_service, lifecycle_service, purchase_service
from ..services.access_policy import AccessDeniedError
from ..services.lifecycle_service import LifecycleError
from ..services.purchase_service import BikeNotAvailableError, PurchaseError


bikes_bp = Blueprint("bikes", __name__, url_prefix="/api/bikes")

BIKE_POLICY = ModelValidationPolicy(
    writable_fields={
        "brand", "model", "serial_number", "year", "color", "type", "size",
        "purchase_price_cents", "purchase_date", "photos",
    },
    required_on_create={"brand", "model", "serial_number"},
)


def _json_error(exc: Exception):
    if isinstance(exc, AccessDeniedError):
        return jsonify({"error": str(exc)}), 403
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, (ConflictError, BikeNotAvailableError)):
        body = {"error": str(exc)}
        if isinstance(exc, PurchaseError):
            body["details"] = exc.details
        return jsonify(body), 409
    if isinstance(exc, PurchaseError):
        return jsonify({"error": str(exc), "details": exc.details}), 400
    if isinstance(exc, (ValidationError, LifecycleError)):
        return jsonify({"error": str(exc)}), 400
    current_app.logger.error("Unhandled bike error: %r", exc)
    return jsonify({"error": "Internal server error"}), 500


HANDLED_ERRORS = (
    AccessDeniedError, NotFoundError, ConflictError, PurchaseError,
    ValidationError, LifecycleError,
)


@bikes_bp.get("")
@require_auth
def list_bikes_route():
    """
    List bikes visible to the caller.

    Query params: status, q (brand/model/serial search), client_id,
    page, per_page (pagination is optional).
    """
    try:
        result = bike_service.list_bikes(
            requester=g.requester,
            status=request.args.get("status"),
            search=request.args.get("q"),
            client_id=request.args.get("client_id"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except HANDLED_ERRORS as e:
        return _json_error(e)


@bikes_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_BIKES)
def create_bike_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Bike, payload=payload, policy=BIKE_POLICY, partial=False)
        enforce_rules_bike(patch)
        bike = bike_service.create_bike(patch=patch, requester=g.requester)
        return jsonify(bike.to_dict()), 201
    except HANDLED_ERRORS as e:
        return _json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create bike")
        return jsonify({"error": "Internal server error"}), 500


@bikes_bp.get("/serial/<serial_number>")
@require_auth
def get_bike_by_serial_route(serial_number: str):
    try:
        bike = bike_service.find_by_serial(serial_number, requester=g.requester)
        return jsonify(bike.to_dict()), 200
    except HANDLED_ERRORS as e:
        return _json_error(e)


@bikes_bp.get("/<bike_id>")
@require_auth
def get_bike_route(bike_id: str):
    try:
        bike = bike_service.get_bike(bike_id, requester=g.requester)
        return jsonify(bike.to_dict()), 200
    except HANDLED_ERRORS as e:
        return _json_error(e)


@bikes_bp.patch("/<bike_id>")
@require_auth
@require_capability(Capability.MANAGE_BIKES)
def update_bike_route(bike_id: str):
    """Update bike details. Status is changed through /status, never here."""
    payload = request.get_json(silent=True) or {}
    if "status" in payload:
        return jsonify({"error": "Use POST /api/bikes/<id>/status to change status"}), 400
    try:
        patch = validate_payload(model=Bike, payload=payload, policy=BIKE_POLICY, partial=True)
        enforce_rules_bike(patch)
        bike = bike_service.update_bike(bike_id, patch=patch, requester=g.requester)
        return jsonify(bike.to_dict()), 200
    except HANDLED_ERRORS as e:
        return _json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update bike %s", bike_id)
        return jsonify({"error": "Internal server error"}), 500


@bikes_bp.delete("/<bike_id>")
@require_auth
@require_capability(Capability.MANAGE_BIKES)
def delete_bike_route(bike_id: str):
    try:
        bike_service.delete_bike(bike_id, requester=g.requester)
        return jsonify({"message": "Bike deleted"}), 200
    except HANDLED_ERRORS as e:
        return _json_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete bike %s", bike_id)
        return jsonify({"error": "Internal server error"}), 500


@bikes_bp.post("/<bike_id>/status")
@require_auth
@require_capability(Capability.MANAGE_BIKES)
def change_bike_status_route(bike_id: str):
    """
    Move a bike between available and maintenance.

    Body: {"status": "maintenance" | "available"}
    """
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return jsonify({"error": "status required"}), 400
    try:
        bike = lifecycle_service.change_bike_status(bike_id, status, requester=g.requester)
        return jsonify(bike.to_dict()), 200
    except HANDLED_ERRORS as e:
        return _json_error(e)
    except Exception:
        current_app.logger.exception("Failed to change status of bike %s", bike_id)
        return jsonify({"error": "Internal server error"}), 500


@bikes_bp.post("/<bike_id>/purchase")
@require_auth
def purchase_bike_route(bike_id: str):
    """
    The signed-in user buys an available bike.

    409 when the bike is sold, in maintenance, or was bought concurrently.
    """
    try:
        bike = purchase_service.purchase_bike(g.current_user.id, bike_id, requester=g.requester)
        return jsonify({"bike": bike.to_dict(), "message": "Purchase complete"}), 200
    except HANDLED_ERRORS as e:
        return _json_error(e)
    except Exception:
        current_app.logger.exception("Failed to purchase bike %s", bike_id)
        return jsonify({"error": "Internal server error"}), 500
