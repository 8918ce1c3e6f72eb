# Overview: Workshop jobs; every call is checked against the access policy.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Job, User
from ..validation import NotFoundError
from bikeshop.time_utils import utcnow
from . import access_policy
from .access_policy import Requester


PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
JOB_STATUSES = (PENDING, IN_PROGRESS, COMPLETED)

SOURCES = ("manual", "scan")

JOB_MUTABLE_FIELDS = {
    "customer_name", "customer_phone", "bike_model", "date_in",
    "work_required", "work_done", "labor_cost_cents", "total_cost_cents",
}


class JobError(ValueError):
    """Raised for invalid job operations."""
    pass


def apply_job_patch(job: Job, patch: dict) -> None:
    for k, v in patch.items():
        if k not in JOB_MUTABLE_FIELDS:
            continue
        setattr(job, k, v)


def _load(job_id: str) -> Job:
    job = db.session.get(Job, job_id)
    if not job:
        raise NotFoundError("Job not found")
    return job


def create_job(*, patch: dict, requester: Requester, source: str = "manual") -> Job:
    """
    Create a pending job owned by the requester and add it to their job list.
    """
    access_policy.require_access(requester, access_policy.JOBS, access_policy.CREATE)
    if source not in SOURCES:
        raise JobError(f"Invalid job source '{source}'")

    job = Job(status=PENDING, source=source, user_id=requester.uid,
              labor_cost_cents=0, total_cost_cents=0)
    apply_job_patch(job, patch)
    db.session.add(job)
    db.session.flush()

    owner = db.session.get(User, requester.uid)
    if owner is not None:
        owner.job_ids = [*(owner.job_ids or []), job.id]

    db.session.commit()
    current_app.logger.info("Job %s created (%s) by %s", job.id, source, requester.uid)
    return job


def get_job(job_id: str, *, requester: Requester) -> Job:
    job = _load(job_id)
    access_policy.require_access(requester, access_policy.JOBS, access_policy.READ, doc=job)
    return job


def list_jobs(
    *,
    requester: Requester,
    status: str | None = None,
    customer_phone: str | None = None,
) -> list[Job]:
    query = db.session.query(Job)
    criterion = access_policy.job_read_filter(requester)
    if criterion is not None:
        query = query.filter(criterion)
    if status:
        if status not in JOB_STATUSES:
            raise JobError(f"Invalid status '{status}'. Must be one of: {', '.join(JOB_STATUSES)}")
        query = query.filter(Job.status == status)
    if customer_phone:
        query = query.filter(Job.customer_phone == customer_phone.strip())
    return query.order_by(Job.created_at.desc(), Job.id.asc()).all()


def update_job(job_id: str, *, patch: dict, requester: Requester) -> Job:
    job = _load(job_id)
    access_policy.require_access(requester, access_policy.JOBS, access_policy.UPDATE, doc=job)
    apply_job_patch(job, patch)
    if job.total_cost_cents < job.labor_cost_cents:
        db.session.rollback()
        raise JobError("total_cost_cents cannot be less than labor_cost_cents")
    job.updated_at = utcnow()
    db.session.commit()
    return job


def set_job_status(job_id: str, status: str, *, requester: Requester) -> Job:
    if status not in JOB_STATUSES:
        raise JobError(f"Invalid status '{status}'. Must be one of: {', '.join(JOB_STATUSES)}")
    job = _load(job_id)
    access_policy.require_access(requester, access_policy.JOBS, access_policy.UPDATE, doc=job)
    job.status = status
    job.updated_at = utcnow()
    db.session.commit()
    return job


def delete_job(job_id: str, *, requester: Requester) -> None:
    job = _load(job_id)
    access_policy.require_access(requester, access_policy.JOBS, access_policy.DELETE, doc=job)

    owner = db.session.get(User, job.user_id)
    if owner is not None and job.id in (owner.job_ids or []):
        owner.job_ids = [j for j in owner.job_ids if j != job.id]

    db.session.delete(job)
    db.session.commit()
