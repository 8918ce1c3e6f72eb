from __future__ import annotations

from ..extensions import db
from bikeshop.time_utils import to_utc_z
from .common import id_column


class SecurityEvent(db.Model):
    """
    Security event audit log.

    WHY: Track access denials, sign-ins and role changes. Append-only.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_occurred", "occurred_at"),
    )

    id = id_column(db)

    # Nullable for anonymous / pre-auth events
    user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=True, index=True)

    # ACCESS_DENIED, CAPABILITY_DENIED, LOGIN_FAILED, LOGOUT, ROLE_CHANGED, ...
    event_type = db.Column(db.String(64), nullable=False, index=True)
    resource = db.Column(db.String(128), nullable=True)  # e.g., "bikes/3f2a..."
    action = db.Column(db.String(64), nullable=True)     # e.g., "read", "RECORD_SALES"

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("security_events", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
