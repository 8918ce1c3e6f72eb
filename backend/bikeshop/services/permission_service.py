# Overview: Role resolution, capability checks and security event logging.

"""
Role Resolution and Capability Checking

WHY: One place decides what a user is allowed to do. The document access
policy (access_policy.py) and the capability set returned to clients both
call resolve_role(), so the two cannot drift apart.

DESIGN PRINCIPLES:
- Fail closed: unknown roles and failed lookups resolve to "user"
- Log denials only: grants are not logged
- Capabilities are enum members; codes from the outside are parsed once
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import User, SecurityEvent, CapabilityOverride
from ..permissions import (
    Capability,
    DEFAULT_ROLE_CAPABILITIES,
    ROLE_ADMIN,
    ROLE_USER,
    VALID_ROLES,
    parse_capability,
)
from bikeshop.time_utils import utcnow


# Capabilities that come from roles only; overrides may not touch them
PROTECTED_CAPABILITIES = {
    Capability.MANAGE_STAFF,
}

OVERRIDE_TYPES = ("GRANT", "DENY")


class CapabilityDeniedError(Exception):
    """Raised when a user lacks a required capability."""
    pass


def log_security_event(
    user_id: str | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to the audit trail.

    event_type examples:
    - ACCESS_DENIED
    - CAPABILITY_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - ROLE_CHANGED
    - PASSWORD_RESET_REQUESTED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def resolve_role(user_id: str | None) -> str:
    """
    Resolve the role of a user by reading their own user record.

    Returns "admin" only when the record exists, is active and says so.
    Everything else, including a failed lookup, resolves to "user".
    """
    if not user_id:
        return ROLE_USER
    try:
        user = db.session.get(User, user_id)
    except SQLAlchemyError:
        current_app.logger.exception("Role lookup failed for user %s", user_id)
        db.session.rollback()
        return ROLE_USER

    if user is None or not user.is_active:
        return ROLE_USER
    if user.role not in VALID_ROLES:
        return ROLE_USER
    return user.role


def is_admin(user_id: str | None) -> bool:
    return resolve_role(user_id) == ROLE_ADMIN


def get_user_capabilities(user_id: str) -> set[Capability]:
    """
    Get all capabilities for a user: role defaults plus active overrides.

    Admins always hold every capability; overrides only shape the user role.
    """
    role = resolve_role(user_id)
    capabilities: set[Capability] = set(DEFAULT_ROLE_CAPABILITIES[role])
    if role == ROLE_ADMIN:
        return capabilities

    overrides = db.session.query(CapabilityOverride).filter_by(
        user_id=user_id,
        is_active=True,
    ).all()

    for override in overrides:
        try:
            capability = parse_capability(override.capability)
        except ValueError:
            current_app.logger.warning("Ignoring override with unknown capability %r", override.capability)
            continue
        # Never allow overrides to change protected capabilities
        if capability in PROTECTED_CAPABILITIES:
            continue
        if override.override_type == "GRANT":
            capabilities.add(capability)
        elif override.override_type == "DENY":
            capabilities.discard(capability)

    return capabilities


def user_has_capability(user_id: str, capability: Capability) -> bool:
    return capability in get_user_capabilities(user_id)


def require_capability(
    user_id: str,
    capability: Capability,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require user to hold a capability, raise CapabilityDeniedError if not.
    Denials are written to security_events.
    """
    if user_has_capability(user_id, capability):
        return

    log_security_event(
        user_id=user_id,
        event_type="CAPABILITY_DENIED",
        success=False,
        resource=resource,
        action=capability.value,
        reason=f"Missing capability: {capability.value}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise CapabilityDeniedError(f"Capability required: {capability.value}")


def set_capability_override(
    *,
    user_id: str,
    capability,
    override_type: str,
    granted_by_user_id: str,
    reason: str | None = None,
) -> CapabilityOverride:
    """
    GRANT or DENY a capability for one user, replacing any active override.
    """
    capability = parse_capability(capability)
    if capability in PROTECTED_CAPABILITIES:
        raise ValueError("Capability overrides cannot modify staff management")

    override_type = (override_type or "").upper()
    if override_type not in OVERRIDE_TYPES:
        raise ValueError("override_type must be GRANT or DENY")

    if db.session.get(User, user_id) is None:
        raise ValueError("User not found")
    if resolve_role(user_id) == ROLE_ADMIN:
        raise ValueError("Admins hold every capability and cannot be overridden")

    now = utcnow()
    existing = db.session.query(CapabilityOverride).filter_by(
        user_id=user_id,
        capability=capability.value,
        is_active=True,
    ).all()
    for row in existing:
        row.is_active = False
        row.revoked_at = now

    override = CapabilityOverride(
        user_id=user_id,
        capability=capability.value,
        override_type=override_type,
        granted_by_user_id=granted_by_user_id,
        reason=reason,
        is_active=True,
    )
    db.session.add(override)
    db.session.commit()
    return override


def clear_capability_override(*, user_id: str, capability) -> bool:
    """Deactivate the active override, returning the user to role defaults."""
    capability = parse_capability(capability)
    rows = db.session.query(CapabilityOverride).filter_by(
        user_id=user_id,
        capability=capability.value,
        is_active=True,
    ).all()
    if not rows:
        return False
    now = utcnow()
    for row in rows:
        row.is_active = False
        row.revoked_at = now
    db.session.commit()
    return True


def list_capability_overrides(user_id: str) -> list[CapabilityOverride]:
    return (
        db.session.query(CapabilityOverride)
        .filter_by(user_id=user_id, is_active=True)
        .order_by(CapabilityOverride.capability.asc())
        .all()
    )
