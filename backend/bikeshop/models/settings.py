from __future__ import annotations

from ..extensions import db
from bikeshop.time_utils import to_utc_z


class BusinessSettings(db.Model):
    """
    Shop-wide settings (single row, id=1).

    JSON sections are validated by settings_service before they are written.
    """
    __tablename__ = "business_settings"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(128), nullable=False, default="")
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    mobile = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    logo = db.Column(db.String(512), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # {"sales": bool, "jobs": bool}
    features_json = db.Column(db.JSON, nullable=False)
    # {"monday": {"open": "09:00", "close": "17:00", "closed": false}, ...}
    opening_hours_json = db.Column(db.JSON, nullable=False)
    # {"primary": "#2563eb"}
    theme_json = db.Column(db.JSON, nullable=False)
    # {"brands": [...], "colors": [...], "sizes": [...]}
    bike_options_json = db.Column(db.JSON, nullable=False)
    photos = db.Column(db.JSON, nullable=False, default=list)

    updated_by_user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "mobile": self.mobile,
            "address": self.address,
            "logo": self.logo,
            "notes": self.notes,
            "features": dict(self.features_json or {}),
            "opening_hours": dict(self.opening_hours_json or {}),
            "theme": dict(self.theme_json or {}),
            "bike_options": dict(self.bike_options_json or {}),
            "photos": list(self.photos or []),
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
