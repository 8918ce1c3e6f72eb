# Overview: Document-level access policy for the users, bikes and jobs collections.

"""
Access Policy Evaluator

Every service call that touches a user, bike or job document asks this module
first. The rules:

    users/{id}  create, read, update : requester is {id}
                delete               : never
    bikes/{id}  create               : requester is admin
                read                 : status == "available"
                                       OR bike.user_id == requester
                                       OR requester is admin
                update, delete       : bike.user_id == requester OR admin
    jobs/{id}   create               : any authenticated requester
                read, update, delete : job.user_id == requester OR admin

Available bikes are readable by every signed-in identity so the storefront and
sales screens can browse stock; everything else is owner-or-admin.

A denial is reported as the same generic message whatever the reason, and is
recorded as an ACCESS_DENIED security event.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import or_

from ..models import Bike, Job
from ..permissions import ROLE_ADMIN, ROLE_USER
from . import permission_service


USERS = "users"
BIKES = "bikes"
JOBS = "jobs"

CREATE = "create"
READ = "read"
UPDATE = "update"
DELETE = "delete"

COLLECTIONS = (USERS, BIKES, JOBS)
ACTIONS = (CREATE, READ, UPDATE, DELETE)

DENIED_MESSAGE = "Missing or insufficient permissions."


class AccessDeniedError(Exception):
    """Raised when the policy denies an operation. The message never says why."""

    def __init__(self, message: str = DENIED_MESSAGE):
        super().__init__(message)


@dataclass(frozen=True)
class Requester:
    """Identity a rule is evaluated for. uid is None for anonymous callers."""
    uid: str | None
    role: str = ROLE_USER

    @property
    def is_authenticated(self) -> bool:
        return bool(self.uid)

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == ROLE_ADMIN


ANONYMOUS = Requester(uid=None)


def requester_for(user_id: str | None) -> Requester:
    """Build a Requester, resolving the role from the user's own record."""
    if not user_id:
        return ANONYMOUS
    return Requester(uid=user_id, role=permission_service.resolve_role(user_id))


def _user_rule(requester: Requester, action: str, doc_id: str | None) -> bool:
    if action == DELETE:
        return False
    return doc_id is not None and doc_id == requester.uid


def _bike_rule(requester: Requester, action: str, bike) -> bool:
    if action == CREATE:
        return requester.is_admin
    if requester.is_admin:
        return True
    if bike is None:
        return False
    is_owner = bike.user_id is not None and bike.user_id == requester.uid
    if action == READ:
        return bike.status == "available" or is_owner
    # update / delete
    return is_owner


def _job_rule(requester: Requester, action: str, job) -> bool:
    if action == CREATE:
        return True
    if requester.is_admin:
        return True
    return job is not None and job.user_id == requester.uid


def can_access(
    requester: Requester,
    collection: str,
    action: str,
    *,
    doc=None,
    doc_id: str | None = None,
) -> bool:
    """
    Evaluate the rule for (collection, action).

    doc is the stored document (Bike / Job) for bike and job rules; doc_id is
    the addressed user id for user rules.
    """
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection}")
    if action not in ACTIONS:
        raise ValueError(f"Unknown action: {action}")

    if not requester.is_authenticated:
        return False

    if collection == USERS:
        return _user_rule(requester, action, doc_id)
    if collection == BIKES:
        return _bike_rule(requester, action, doc)
    return _job_rule(requester, action, doc)


def require_access(
    requester: Requester,
    collection: str,
    action: str,
    *,
    doc=None,
    doc_id: str | None = None,
) -> None:
    """Raise AccessDeniedError (and audit the denial) when can_access is False."""
    if can_access(requester, collection, action, doc=doc, doc_id=doc_id):
        return

    target_id = doc_id or getattr(doc, "id", None)
    resource = f"{collection}/{target_id}" if target_id else collection
    current_app.logger.info(
        "Access denied: uid=%s role=%s %s %s", requester.uid, requester.role, action, resource,
    )
    permission_service.log_security_event(
        user_id=requester.uid,
        event_type="ACCESS_DENIED",
        success=False,
        resource=resource,
        action=action,
        reason="Access policy denied",
    )
    raise AccessDeniedError()


def bike_read_filter(requester: Requester):
    """
    SQL criterion equivalent to the bikes read rule, for list queries.
    Returns None when no filtering is needed (admins).
    """
    if requester.is_admin:
        return None
    if not requester.is_authenticated:
        return Bike.id.is_(None)
    return or_(Bike.status == "available", Bike.user_id == requester.uid)


def job_read_filter(requester: Requester):
    """SQL criterion equivalent to the jobs read rule."""
    if requester.is_admin:
        return None
    if not requester.is_authenticated:
        return Job.id.is_(None)
    return Job.user_id == requester.uid
