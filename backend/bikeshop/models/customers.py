from __future__ import annotations

from ..extensions import db
from bikeshop.time_utils import to_utc_z
from .common import id_column


class Client(db.Model):
    """
    A shop client (walk-in buyer or workshop customer).

    bike_serial_numbers lists the serials of bikes sold to or registered for
    the client. Bikes point back through Bike.client_id.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_phone", "phone"),
        db.Index("ix_clients_name", "name"),
    )

    id = id_column(db)

    name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    bike_serial_numbers = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "bike_serial_numbers": list(self.bike_serial_numbers or []),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
