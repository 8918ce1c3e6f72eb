from __future__ import annotations

from ..extensions import db
from bikeshop.time_utils import to_utc_z, to_iso_date
from .common import id_column


class Purchase(db.Model):
    """
    Completed bike sale.

    Holds snapshots of the bike and client as they were at the time of sale so
    later edits to either record do not rewrite history. IMMUTABLE once
    written.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_sale_date", "sale_date"),
        db.Index("ix_purchases_created_at", "created_at"),
    )

    id = id_column(db)

    # Bike snapshot
    bike_id = db.Column(db.String(32), nullable=False, index=True)
    brand = db.Column(db.String(64), nullable=False)
    model = db.Column(db.String(128), nullable=False)
    serial_number = db.Column(db.String(64), nullable=False)
    year = db.Column(db.Integer, nullable=True)
    color = db.Column(db.String(32), nullable=True)
    type = db.Column(db.String(32), nullable=True)
    size = db.Column(db.String(16), nullable=True)

    # Client snapshot
    client_id = db.Column(db.String(32), nullable=False, index=True)
    client_name = db.Column(db.String(128), nullable=False)
    client_email = db.Column(db.String(255), nullable=True)
    client_phone = db.Column(db.String(32), nullable=True)

    # Sale details
    price_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)  # cash, credit, transfer
    sale_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed")

    photos = db.Column(db.JSON, nullable=False, default=list)

    created_by_user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bike_id": self.bike_id,
            "brand": self.brand,
            "model": self.model,
            "serial_number": self.serial_number,
            "year": self.year,
            "color": self.color,
            "type": self.type,
            "size": self.size,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "price_cents": self.price_cents,
            "payment_method": self.payment_method,
            "sale_date": to_iso_date(self.sale_date),
            "status": self.status,
            "photos": list(self.photos or []),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
