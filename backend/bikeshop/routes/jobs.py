# Overview: Flask API routes for workshop jobs and job-sheet scanning.

"""
Workshop job routes.

SECURITY: require MANAGE_JOBS and the "jobs" feature toggle. Reads and writes
on a job are limited to its owner (or an admin) by the access policy.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Job
from ..permissions import Capability
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    enforce_rules_job,
)
from ..decorators import require_auth, require_capability, require_feature
from ..services import job_service, jobsheet_service
from ..services.access_policy import AccessDeniedError
from ..services.job_service import JobError
from ..services.jobsheet_service import JobSheetError, JobSheetConfigError


jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/jobs")

JOB_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name", "customer_phone", "bike_model", "date_in",
        "work_required", "work_done", "labor_cost_cents", "total_cost_cents",
    },
    required_on_create={"customer_name", "customer_phone", "bike_model", "work_required"},
)


def _json_error(exc: Exception):
    if isinstance(exc, AccessDeniedError):
        return jsonify({"error": str(exc)}), 403
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, (ValidationError, JobError)):
        return jsonify({"error": str(exc)}), 400
    current_app.logger.error("Unhandled job error: %r", exc)
    return jsonify({"error": "Internal server error"}), 500


HANDLED_ERRORS = (AccessDeniedError, NotFoundError, ValidationError, JobError)


@jobs_bp.get("")
@require_auth
@require_feature("jobs")
@require_capability(Capability.MANAGE_JOBS)
def list_jobs_route():
    """Query params: status, phone."""
    try:
        jobs = job_service.list_jobs(
            requester=g.requester,
            status=request.args.get("status"),
            customer_phone=request.args.get("phone"),
        )
        return jsonify({"items": [j.to_dict() for j in jobs], "count": len(jobs)})
    except HANDLED_ERRORS as e:
        return _json_error(e)


@jobs_bp.post("")
@require_auth
@require_feature("jobs")
@require_capability(Capability.MANAGE_JOBS)
def create_job_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Job, payload=payload, policy=JOB_POLICY, partial=False)
        enforce_rules_job(patch)
        job = job_service.create_job(patch=patch, requester=g.requester)
        return jsonify(job.to_dict()), 201
    except HANDLED_ERRORS as e:
        return _json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create job")
        return jsonify({"error": "Internal server error"}), 500


@jobs_bp.post("/scan")
@require_auth
@require_feature("jobs")
@require_capability(Capability.MANAGE_JOBS)
def scan_job_sheet_route():
    """
    Extract job details from a photographed job sheet.

    Body: {"image": "<base64 JPEG or data URL>"}
    With ?save=1 the extracted job is also created (source "scan").

    502 when extraction fails (retry with a clearer photo), 503 when
    scanning is not configured.
    """
    payload = request.get_json(silent=True) or {}
    save = request.args.get("save", "0") in ("1", "true", "yes")
    try:
        sheet = jobsheet_service.extract_job_sheet(payload.get("image"))
    except JobSheetConfigError as e:
        return jsonify({"error": str(e)}), 503
    except JobSheetError as e:
        return jsonify({"error": str(e), "retryable": e.retryable}), 502
    except Exception:
        current_app.logger.exception("Failed to scan job sheet")
        return jsonify({"error": "Internal server error"}), 500

    if not save:
        return jsonify({"extracted": sheet.to_dict()}), 200

    try:
        job = job_service.create_job(patch=sheet.to_job_patch(), requester=g.requester, source="scan")
        return jsonify({"extracted": sheet.to_dict(), "job": job.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return _json_error(e)
    except Exception:
        current_app.logger.exception("Failed to save scanned job")
        return jsonify({"error": "Internal server error"}), 500


@jobs_bp.get("/<job_id>")
@require_auth
@require_feature("jobs")
@require_capability(Capability.MANAGE_JOBS)
def get_job_route(job_id: str):
    try:
        return jsonify(job_service.get_job(job_id, requester=g.requester).to_dict())
    except HANDLED_ERRORS as e:
        return _json_error(e)


@jobs_bp.patch("/<job_id>")
@require_auth
@require_feature("jobs")
@require_capability(Capability.MANAGE_JOBS)
def update_job_route(job_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Job, payload=payload, policy=JOB_POLICY, partial=True)
        enforce_rules_job(patch)
        job = job_service.update_job(job_id, patch=patch, requester=g.requester)
        return jsonify(job.to_dict())
    except HANDLED_ERRORS as e:
        return _json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update job %s", job_id)
        return jsonify({"error": "Internal server error"}), 500


@jobs_bp.post("/<job_id>/status")
@require_auth
@require_feature("jobs")
@require_capability(Capability.MANAGE_JOBS)
def set_job_status_route(job_id: str):
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return jsonify({"error": "status required"}), 400
    try:
        job = job_service.set_job_status(job_id, status, requester=g.requester)
        return jsonify(job.to_dict())
    except HANDLED_ERRORS as e:
        return _json_error(e)


@jobs_bp.delete("/<job_id>")
@require_auth
@require_feature("jobs")
@require_capability(Capability.MANAGE_JOBS)
def delete_job_route(job_id: str):
    try:
        job_service.delete_job(job_id, requester=g.requester)
        return jsonify({"message": "Job deleted"})
    except HANDLED_ERRORS as e:
        return _json_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete job %s", job_id)
        return jsonify({"error": "Internal server error"}), 500
