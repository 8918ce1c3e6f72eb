from __future__ import annotations

from ..extensions import db
from bikeshop.time_utils import to_utc_z, to_iso_date
from .common import id_column


class Job(db.Model):
    """
    Workshop repair job.

    status: pending -> in_progress -> completed (any order, set by staff)
    source: "manual" for typed-in jobs, "scan" for jobs extracted from a
    photographed job sheet.
    """
    __tablename__ = "jobs"
    __table_args__ = (
        db.Index("ix_jobs_status", "status"),
        db.Index("ix_jobs_user_id", "user_id"),
        db.Index("ix_jobs_customer_phone", "customer_phone"),
    )

    id = id_column(db)

    customer_name = db.Column(db.String(128), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)
    bike_model = db.Column(db.String(128), nullable=False)
    date_in = db.Column(db.Date, nullable=True)

    work_required = db.Column(db.Text, nullable=False)
    work_done = db.Column(db.Text, nullable=True)

    labor_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="pending")
    source = db.Column(db.String(16), nullable=False, default="manual")

    user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    owner = db.relationship("User", backref=db.backref("owned_jobs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "bike_model": self.bike_model,
            "date_in": to_iso_date(self.date_in),
            "work_required": self.work_required,
            "work_done": self.work_done,
            "labor_cost_cents": self.labor_cost_cents,
            "total_cost_cents": self.total_cost_cents,
            "status": self.status,
            "source": self.source,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
