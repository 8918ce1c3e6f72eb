from __future__ import annotations

from ..extensions import db
from bikeshop.time_utils import to_utc_z
from .common import id_column


class User(db.Model):
    """
    User accounts for authentication and attribution.

    The id is the opaque uid handed out at sign-up; access rules compare it
    against owner fields on bikes and jobs.

    bike_ids / job_ids are denormalized lists kept in step with purchases and
    job creation. Always assign a new list; in-place mutation is not tracked.
    """
    __tablename__ = "users"

    id = id_column(db)

    name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(32), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # "user" or "admin"; anything else resolves to "user"
    role = db.Column(db.String(16), nullable=False, default="user")

    bike_ids = db.Column(db.JSON, nullable=False, default=list)
    job_ids = db.Column(db.JSON, nullable=False, default=list)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "bikes": list(self.bike_ids or []),
            "jobs": list(self.job_ids or []),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Bearer session tokens.

    Only the SHA-256 hash of the token is stored. A session is valid until it
    is revoked, passes expires_at, or sits idle past the idle timeout.
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_revoked", "user_id", "is_revoked"),
    )

    id = id_column(db)
    user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(64), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }


class PasswordResetToken(db.Model):
    """Single-use password reset token (hash stored, plaintext delivered out of band)."""
    __tablename__ = "password_reset_tokens"

    id = id_column(db)
    user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("password_resets", lazy=True))


class CapabilityOverride(db.Model):
    """
    Per-user GRANT/DENY of a single capability on top of the role defaults.

    One active override per (user, capability); clearing deactivates it so the
    history stays visible.
    """
    __tablename__ = "capability_overrides"
    __table_args__ = (
        db.Index("ix_capability_overrides_user_active", "user_id", "is_active"),
    )

    id = id_column(db)
    user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=False, index=True)
    capability = db.Column(db.String(64), nullable=False)
    override_type = db.Column(db.String(8), nullable=False)  # GRANT or DENY
    reason = db.Column(db.Text, nullable=True)

    granted_by_user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("capability_overrides", lazy=True))
    granted_by = db.relationship("User", foreign_keys=[granted_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "capability": self.capability,
            "override_type": self.override_type,
            "reason": self.reason,
            "granted_by_user_id": self.granted_by_user_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }
