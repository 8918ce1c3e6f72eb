# Overview: User profiles (self-only through the access policy) and staff administration.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import User
from ..permissions import Capability
from ..validation import ConflictError, NotFoundError
from bikeshop.time_utils import utcnow
from . import access_policy, auth_service, permission_service, session_service
from .access_policy import Requester


PROFILE_FIELDS = ("name", "email", "phone")


class UserError(ValueError):
    pass


def _load(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def get_profile(user_id: str, *, requester: Requester) -> User:
    # Policy first so a missing id and a foreign id look the same to the caller
    access_policy.require_access(requester, access_policy.USERS, access_policy.READ, doc_id=user_id)
    return _load(user_id)


def update_profile(user_id: str, *, patch: dict, requester: Requester) -> User:
    """
    Update name, email or phone on the requester's own record.

    Role, bike and job lists are not writable here.
    """
    access_policy.require_access(requester, access_policy.USERS, access_policy.UPDATE, doc_id=user_id)

    forbidden = sorted(set(patch) - set(PROFILE_FIELDS))
    if forbidden:
        raise UserError(f"Fields not writable: {', '.join(forbidden)}")

    updates = {}
    if "name" in patch:
        name = patch["name"].strip() if isinstance(patch["name"], str) else None
        if not name:
            raise UserError("Name is required")
        updates["name"] = name
    if "email" in patch:
        email = auth_service.normalize_email(patch["email"] if isinstance(patch["email"], str) else None)
        if not auth_service.EMAIL_RE.match(email):
            raise UserError("The email address is badly formatted.")
        clash = db.session.query(User).filter(User.email == email, User.id != user_id).first()
        if clash:
            raise ConflictError("The email address is already in use by another account.")
        updates["email"] = email
    if "phone" in patch:
        phone = patch["phone"]
        if phone is not None and not isinstance(phone, str):
            raise UserError("phone must be a string")
        updates["phone"] = (phone.strip() or None) if phone else None

    user = _load(user_id)
    for key, value in updates.items():
        setattr(user, key, value)
    user.updated_at = utcnow()
    db.session.commit()
    return user


def list_users(*, search: str | None = None, role: str | None = None) -> list[User]:
    query = db.session.query(User)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(User.name.ilike(like), User.email.ilike(like), User.phone.ilike(like)))
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.name.asc(), User.id.asc()).all()


def change_role(user_id: str, role: str, *, actor_id: str) -> User:
    """
    Set another user's role. Requires MANAGE_STAFF; admins cannot demote themselves.
    """
    permission_service.require_capability(actor_id, Capability.MANAGE_STAFF, resource="users")
    if user_id == actor_id:
        raise UserError("You cannot change your own role")

    _load(user_id)
    user = auth_service.set_role(user_id, role)
    permission_service.log_security_event(
        user_id=actor_id,
        event_type="ROLE_CHANGED",
        success=True,
        resource=f"users/{user_id}",
        action=role,
    )
    current_app.logger.info("User %s set role of %s to %s", actor_id, user_id, role)
    return user


def set_active(user_id: str, is_active: bool, *, actor_id: str) -> User:
    permission_service.require_capability(actor_id, Capability.MANAGE_STAFF, resource="users")
    if user_id == actor_id:
        raise UserError("You cannot deactivate your own account")
    user = _load(user_id)
    user.is_active = bool(is_active)
    user.updated_at = utcnow()
    revoked = 0
    if not user.is_active:
        revoked = session_service.revoke_all_user_sessions(user.id, reason="deactivated")
    db.session.commit()
    current_app.logger.info(
        "User %s %s by %s (%s sessions revoked)",
        user_id, "activated" if user.is_active else "deactivated", actor_id, revoked,
    )
    return user
