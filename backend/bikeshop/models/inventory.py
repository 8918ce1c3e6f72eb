from __future__ import annotations

from ..extensions import db
from bikeshop.time_utils import to_utc_z, to_iso_date
from .common import id_column


class Bike(db.Model):
    """
    A single bike in the shop's inventory.

    status: available -> sold (purchase / recorded sale only),
            available <-> maintenance (manual)

    user_id is the owning user (the admin who created the record) and is what
    the access policy compares against. client_id is the buyer: either a
    client record id (staff sale) or a user id (self-service purchase), so it
    carries no foreign key.
    """
    __tablename__ = "bikes"
    __table_args__ = (
        db.Index("ix_bikes_status", "status"),
        db.Index("ix_bikes_user_id", "user_id"),
        db.Index("ix_bikes_client_id", "client_id"),
    )

    id = id_column(db)

    brand = db.Column(db.String(64), nullable=False)
    model = db.Column(db.String(128), nullable=False)
    serial_number = db.Column(db.String(64), nullable=False, unique=True)
    year = db.Column(db.Integer, nullable=True)
    color = db.Column(db.String(32), nullable=True)
    type = db.Column(db.String(32), nullable=True)
    size = db.Column(db.String(16), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="available")

    purchase_price_cents = db.Column(db.Integer, nullable=True)
    purchase_date = db.Column(db.Date, nullable=True)

    # Photo references (URLs); binary storage lives elsewhere
    photos = db.Column(db.JSON, nullable=False, default=list)

    user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=True)
    client_id = db.Column(db.String(32), nullable=True)
    client_name = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    owner = db.relationship("User", backref=db.backref("owned_bikes", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brand": self.brand,
            "model": self.model,
            "serial_number": self.serial_number,
            "year": self.year,
            "color": self.color,
            "type": self.type,
            "size": self.size,
            "status": self.status,
            "purchase_price_cents": self.purchase_price_cents,
            "purchase_date": to_iso_date(self.purchase_date),
            "photos": list(self.photos or []),
            "user_id": self.user_id,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
