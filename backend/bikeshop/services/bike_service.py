# Overview: Bike inventory operations; every call is checked against the access policy.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Bike, Client, User
from ..validation import ConflictError, NotFoundError
from bikeshop.time_utils import utcnow
from . import access_policy
from .access_policy import Requester
from .lifecycle_service import AVAILABLE, validate_status


BIKE_MUTABLE_FIELDS = {
    "brand", "model", "serial_number", "year", "color", "type", "size",
    "purchase_price_cents", "purchase_date", "photos",
}


def apply_bike_patch(bike: Bike, patch: dict) -> None:
    for k, v in patch.items():
        if k not in BIKE_MUTABLE_FIELDS:
            continue
        setattr(bike, k, v)


def _require_unique_serial(serial_number: str, exclude_bike_id: str | None = None) -> None:
    query = db.session.query(Bike).filter(Bike.serial_number == serial_number)
    if exclude_bike_id:
        query = query.filter(Bike.id != exclude_bike_id)
    if query.first():
        raise ConflictError(f"A bike with serial number {serial_number} already exists")


def _load(bike_id: str) -> Bike:
    bike = db.session.get(Bike, bike_id)
    if not bike:
        raise NotFoundError("Bike not found")
    return bike


def create_bike(*, patch: dict, requester: Requester) -> Bike:
    """
    Create a bike in status "available", owned by the requester (admin only).

    The new id is appended to the creator's bike list.
    """
    access_policy.require_access(requester, access_policy.BIKES, access_policy.CREATE)
    _require_unique_serial(patch["serial_number"])

    bike = Bike(status=AVAILABLE, user_id=requester.uid, photos=[])
    apply_bike_patch(bike, patch)
    db.session.add(bike)
    db.session.flush()

    owner = db.session.get(User, requester.uid)
    if owner is not None:
        owner.bike_ids = [*(owner.bike_ids or []), bike.id]

    db.session.commit()
    current_app.logger.info("Bike %s (%s) created by %s", bike.id, bike.serial_number, requester.uid)
    return bike


def get_bike(bike_id: str, *, requester: Requester) -> Bike:
    bike = _load(bike_id)
    access_policy.require_access(requester, access_policy.BIKES, access_policy.READ, doc=bike)
    return bike


def find_by_serial(serial_number: str, *, requester: Requester) -> Bike:
    serial_number = (serial_number or "").strip().upper()
    if not serial_number:
        raise NotFoundError("Bike not found")
    bike = db.session.query(Bike).filter_by(serial_number=serial_number).first()
    if not bike:
        raise NotFoundError("Bike not found")
    access_policy.require_access(requester, access_policy.BIKES, access_policy.READ, doc=bike)
    return bike


def list_bikes(
    *,
    requester: Requester,
    status: str | None = None,
    search: str | None = None,
    client_id: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    List the bikes the requester may read, newest first.

    Non-admins see available bikes plus bikes they own.
    """
    query = db.session.query(Bike)
    criterion = access_policy.bike_read_filter(requester)
    if criterion is not None:
        query = query.filter(criterion)

    if status:
        validate_status(status)
        query = query.filter(Bike.status == status)
    if client_id:
        query = query.filter(Bike.client_id == client_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Bike.brand.ilike(like),
            Bike.model.ilike(like),
            Bike.serial_number.ilike(like),
        ))

    query = query.order_by(Bike.created_at.desc(), Bike.id.asc())

    if page is None:
        bikes = query.all()
        return {"items": [b.to_dict() for b in bikes], "count": len(bikes)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    bikes = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [b.to_dict() for b in bikes],
        "count": len(bikes),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def update_bike(bike_id: str, *, patch: dict, requester: Requester) -> Bike:
    bike = _load(bike_id)
    access_policy.require_access(requester, access_policy.BIKES, access_policy.UPDATE, doc=bike)

    if "serial_number" in patch and patch["serial_number"] != bike.serial_number:
        _require_unique_serial(patch["serial_number"], exclude_bike_id=bike.id)

    apply_bike_patch(bike, patch)
    bike.updated_at = utcnow()
    db.session.commit()
    return bike


def delete_bike(bike_id: str, *, requester: Requester) -> None:
    """
    Delete a bike and drop it from the owner's and buyer's lists.
    """
    bike = _load(bike_id)
    access_policy.require_access(requester, access_policy.BIKES, access_policy.DELETE, doc=bike)

    for uid in {bike.user_id, bike.client_id} - {None}:
        user = db.session.get(User, uid)
        if user is not None and bike.id in (user.bike_ids or []):
            user.bike_ids = [b for b in user.bike_ids if b != bike.id]

    if bike.client_id:
        client = db.session.get(Client, bike.client_id)
        if client is not None and bike.serial_number in (client.bike_serial_numbers or []):
            client.bike_serial_numbers = [s for s in client.bike_serial_numbers if s != bike.serial_number]

    db.session.delete(bike)
    db.session.commit()
    current_app.logger.info("Bike %s deleted by %s", bike_id, requester.uid)
