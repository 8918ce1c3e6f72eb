# Overview: Bearer session tokens and the per-request session context.

"""
Session Token Management Service

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

The SessionContext built here is the request's explicit application context:
it is created from the bearer token when a request starts (validate_session)
and torn down on sign-out (revoke_session), replacing any ambient notion of
"the current user".

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout or password reset
"""

from __future__ import annotations

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User
from bikeshop.time_utils import utcnow
from .permission_service import resolve_role


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    """
    Authenticated request context.

    role is resolved from the user's record when the context is built; the
    access policy resolves it again per check so a demotion takes effect on
    the next operation.
    """
    user: User
    session: SessionToken
    role: str

    @property
    def user_id(self) -> str:
        return self.user.id


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 of a high-entropy token, hex encoded."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: str,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token). Only the hash is stored.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is disabled")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is unknown, expired, idle too long, or revoked
    - User account is deactivated

    Updates last_used_at on success.
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return None

    now = utcnow()
    if now > session.expires_at:
        _revoke(session, "expired")
        return None
    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "idle_timeout")
        return None

    user = db.session.get(User, session.user_id)
    if not user or not user.is_active:
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, role=resolve_role(user.id))


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def revoke_session(token: str, reason: str = "logout") -> bool:
    """Revoke a session by plaintext token. Returns False if unknown or already revoked."""
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return False
    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: str, reason: str) -> int:
    """Revoke every open session of a user (deactivation, password reset)."""
    now = utcnow()
    revoked = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).update(
        {"is_revoked": True, "revoked_at": now, "revoked_reason": reason},
        synchronize_session=False,
    )
    return revoked


def cleanup_expired_sessions(older_than: timedelta = timedelta(days=7)) -> int:
    """Delete sessions that expired or were revoked before the cutoff."""
    cutoff = utcnow() - older_than
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < cutoff,
            db.and_(SessionToken.is_revoked.is_(True), SessionToken.revoked_at < cutoff),
        )
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
