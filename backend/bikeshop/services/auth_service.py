# Overview: Sign-up, sign-in, password hashing and password reset.

"""
Authentication Service

WHY: Every action must be attributable to a user id. Uses bcrypt for password
hashing. Sign-up creates the user record with role "user"; only an existing
admin (or the operator CLI) can elevate a role.

Password reset issues a single-use token valid for PASSWORD_RESET_TTL_MINUTES.
Only the SHA-256 hash is stored; delivering the plaintext to the user is the
mail channel's job, this service only logs the issuance.
"""

from __future__ import annotations

import bcrypt
import re
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import User, PasswordResetToken
from ..permissions import ROLE_ADMIN, ROLE_USER, VALID_ROLES
from bikeshop.time_utils import utcnow
from .session_service import generate_token, hash_token, revoke_all_user_sessions


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AuthError(Exception):
    """Sign-up / sign-in / reset failure; message is shown to the user."""
    pass


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash password using bcrypt (cost from BCRYPT_ROUNDS, default 12; validated first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash (timing-safe)."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def sign_up(email: str, password: str, name: str, phone: str | None = None) -> User:
    """
    Create a new user account with role "user".

    Raises:
        AuthError: invalid email, missing name, email already registered
        PasswordValidationError: weak password
    """
    email = normalize_email(email)
    name = (name or "").strip()

    if not EMAIL_RE.match(email):
        raise AuthError("The email address is badly formatted.")
    if not name:
        raise AuthError("Name is required")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise AuthError("The email address is already in use by another account.")

    password_hash = hash_password(password)

    user = User(
        email=email,
        name=name,
        phone=(phone or "").strip() or None,
        password_hash=password_hash,
        role=ROLE_USER,
        bike_ids=[],
        job_ids=[],
    )

    db.session.add(user)
    db.session.commit()
    current_app.logger.info("User %s signed up", user.id)
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at on success.
    """
    email = normalize_email(email)
    user = db.session.query(User).filter(
        User.email == email,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def set_role(user_id: str, role: str) -> User:
    """Change a user's role. Callers are responsible for checking who asks."""
    if role not in VALID_ROLES:
        raise ValueError(f"Role must be one of: {', '.join(VALID_ROLES)}")

    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    user.role = role
    user.updated_at = utcnow()
    db.session.commit()
    return user


def promote_to_admin(user_id: str) -> User:
    return set_role(user_id, ROLE_ADMIN)


def request_password_reset(email: str) -> str | None:
    """
    Issue a password reset token for the account with this email.

    Returns the plaintext token (for the mail channel) or None if no active
    account matches. Callers must not reveal which case occurred.
    """
    email = normalize_email(email)
    user = db.session.query(User).filter_by(email=email, is_active=True).first()
    if not user:
        current_app.logger.info("Password reset requested for unknown email")
        return None

    ttl = timedelta(minutes=current_app.config.get("PASSWORD_RESET_TTL_MINUTES", 30))
    now = utcnow()
    token = generate_token()

    reset = PasswordResetToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=now,
        expires_at=now + ttl,
    )
    db.session.add(reset)
    db.session.commit()

    current_app.logger.info("Password reset token issued for user %s (expires %s)", user.id, reset.expires_at)
    return token


def confirm_password_reset(token: str, new_password: str) -> User:
    """
    Set a new password using a reset token.

    The token is consumed, and every open session for the user is revoked.
    """
    if not token:
        raise AuthError("Invalid or expired reset token")

    reset = db.session.query(PasswordResetToken).filter_by(token_hash=hash_token(token)).first()
    now = utcnow()
    if not reset or reset.used_at is not None or reset.expires_at < now:
        raise AuthError("Invalid or expired reset token")

    user = db.session.get(User, reset.user_id)
    if not user or not user.is_active:
        raise AuthError("Invalid or expired reset token")

    user.password_hash = hash_password(new_password)
    user.updated_at = now
    reset.used_at = now

    revoke_all_user_sessions(user.id, reason="password_reset")
    db.session.commit()
    return user
