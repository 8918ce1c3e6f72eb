# Overview: Flask API routes for client records; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..models import Client
from ..permissions import Capability
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    enforce_rules_client,
)
from ..decorators import require_auth, require_capability
from ..services import client_service
from ..services.client_service import ClientError


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "bike_serial_numbers"},
    required_on_create={"name", "phone"},
)


@clients_bp.get("")
@require_auth
@require_capability(Capability.MANAGE_CLIENTS)
def list_clients_route():
    """Query params: q (name/phone/email search), limit."""
    clients = client_service.list_clients(
        search=request.args.get("q"),
        limit=request.args.get("limit", type=int),
    )
    return jsonify({"items": [c.to_dict() for c in clients], "count": len(clients)})


@clients_bp.get("/by-phone/<phone>")
@require_auth
@require_capability(Capability.MANAGE_CLIENTS)
def find_client_by_phone_route(phone: str):
    client = client_service.find_by_phone(phone)
    if not client:
        return jsonify({"error": "Client not found"}), 404
    return jsonify(client.to_dict())


@clients_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_CLIENTS)
def create_client_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)
        enforce_rules_client(patch)
        client = client_service.create_client(patch=patch)
        return jsonify(client.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ClientError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<client_id>")
@require_auth
@require_capability(Capability.MANAGE_CLIENTS)
def get_client_route(client_id: str):
    try:
        return jsonify(client_service.get_client(client_id).to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@clients_bp.patch("/<client_id>")
@require_auth
@require_capability(Capability.MANAGE_CLIENTS)
def update_client_route(client_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=True)
        enforce_rules_client(patch)
        client = client_service.update_client(client_id, patch=patch)
        return jsonify(client.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ClientError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update client %s", client_id)
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.delete("/<client_id>")
@require_auth
@require_capability(Capability.MANAGE_CLIENTS)
def delete_client_route(client_id: str):
    """
    Delete a client and detach it from its bikes.

    Either both happen or neither; a failure answers 500 with the reason so
    the UI does not report success.
    """
    try:
        detached = client_service.delete_client(client_id)
        return jsonify({"message": "Client deleted", "bikes_detached": detached})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ClientError as e:
        current_app.logger.error("Client %s delete failed: %s", client_id, e)
        return jsonify({"error": str(e), "details": e.details}), 500
    except Exception:
        current_app.logger.exception("Failed to delete client %s", client_id)
        return jsonify({"error": "Internal server error"}), 500
