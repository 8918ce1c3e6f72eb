# Overview: Flask API routes for recording bike sales to clients and listing them.

"""
Sales routes.

SECURITY: require RECORD_SALES and the "sales" feature toggle.
Recording a sale is the only way besides self-purchase to mark a bike sold.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Purchase
from ..permissions import Capability
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    enforce_rules_sale,
)
from ..decorators import require_auth, require_capability, require_feature
from ..services import purchase_service
from ..services.access_policy import AccessDeniedError
from ..services.lifecycle_service import LifecycleError
from ..services.purchase_service import BikeNotAvailableError, PurchaseError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SALE_POLICY = ModelValidationPolicy(
    writable_fields={"bike_id", "client_id", "price_cents", "payment_method", "sale_date", "photos"},
    required_on_create={"bike_id", "client_id", "price_cents", "payment_method"},
)


@sales_bp.post("")
@require_auth
@require_feature("sales")
@require_capability(Capability.RECORD_SALES)
def record_sale_route():
    """
    Record a sale of an available bike to an existing client.

    Body: bike_id, client_id, price_cents, payment_method (cash|credit|transfer),
    optional sale_date (YYYY-MM-DD, defaults to today) and photos.
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Purchase, payload=payload, policy=SALE_POLICY, partial=False)
        enforce_rules_sale(patch)
        purchase = purchase_service.record_sale(
            bike_id=patch["bike_id"],
            client_id=patch["client_id"],
            price_cents=patch["price_cents"],
            payment_method=patch["payment_method"],
            sale_date=patch.get("sale_date"),
            photos=patch.get("photos"),
            requester=g.requester,
        )
        return jsonify(purchase.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except BikeNotAvailableError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except (PurchaseError, LifecycleError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_feature("sales")
@require_capability(Capability.RECORD_SALES)
def list_sales_route():
    """Recent sales, newest first. Query params: limit (max 100), client_id."""
    sales = purchase_service.list_recent_sales(
        limit=request.args.get("limit", default=20, type=int),
        client_id=request.args.get("client_id"),
    )
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)})


@sales_bp.get("/<sale_id>")
@require_auth
@require_feature("sales")
@require_capability(Capability.RECORD_SALES)
def get_sale_route(sale_id: str):
    try:
        return jsonify(purchase_service.get_sale(sale_id).to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
