"""
Purchase Service - bike sales

WHY: Marking a bike sold and attributing it to the buyer must happen
together. Both paths here run as ONE database transaction whose first write is
a conditional update:

    UPDATE bikes SET status='sold', client_id=:buyer, ...
     WHERE id=:bike_id AND status='available'

If another buyer got there first the update touches zero rows and the whole
transaction is rolled back, so two concurrent purchases of the same bike can
never both succeed, and a failure after the status change cannot leave a sold
bike unattributed.

Two entry points:
- purchase_bike(): a signed-in user buys a bike for themselves.
- record_sale(): staff record a sale to a client record, writing the
  immutable Purchase snapshot.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Bike, Client, Purchase, User
from ..validation import NotFoundError
from bikeshop.time_utils import utcnow
from . import access_policy
from .access_policy import Requester
from .concurrency import run_with_retry
from .lifecycle_service import AVAILABLE, SOLD, require_transition


class PurchaseError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class BikeNotAvailableError(PurchaseError):
    """The bike was not available when the sale was attempted."""
    def __init__(self, bike_id: str, status: str | None = None):
        super().__init__(
            "This bike is not available for purchase",
            details={"bike_id": bike_id, "status": status},
        )


def _mark_sold(bike_id: str, *, client_id: str, client_name: str | None) -> None:
    """
    Conditionally flip available -> sold. Raises BikeNotAvailableError when
    the bike is no longer available.
    """
    now = utcnow()
    updated = (
        db.session.query(Bike)
        .filter(Bike.id == bike_id, Bike.status == AVAILABLE)
        .update(
            {
                Bike.status: SOLD,
                Bike.client_id: client_id,
                Bike.client_name: client_name,
                Bike.updated_at: now,
                Bike.version_id: Bike.version_id + 1,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        current = db.session.query(Bike.status).filter(Bike.id == bike_id).scalar()
        raise BikeNotAvailableError(bike_id, current)


def purchase_bike(user_id: str, bike_id: str, *, requester: Requester | None = None) -> Bike:
    """
    A user buys an available bike.

    Steps (one transaction):
    1. Re-read the bike; fail with BikeNotAvailableError unless available.
    2. Conditionally mark it sold with client_id = user_id.
    3. Append the bike id to the user's bike list.

    requester defaults to the purchaser; staff buying on a user's behalf pass
    their own requester and must be admin.
    """
    requester = requester or access_policy.requester_for(user_id)
    if requester.uid != user_id and not requester.is_admin:
        access_policy.require_access(requester, access_policy.USERS, access_policy.UPDATE, doc_id=user_id)

    def _op():
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        bike = db.session.get(Bike, bike_id)
        if not bike:
            raise NotFoundError("Bike not found")

        if bike.status != AVAILABLE:
            raise BikeNotAvailableError(bike_id, bike.status)
        access_policy.require_access(requester, access_policy.BIKES, access_policy.READ, doc=bike)

        try:
            _mark_sold(bike_id, client_id=user_id, client_name=user.name)

            if bike_id not in (user.bike_ids or []):
                user.bike_ids = [*(user.bike_ids or []), bike_id]
            user.updated_at = utcnow()

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        db.session.expire(bike)
        current_app.logger.info("Bike %s purchased by user %s", bike_id, user_id)
        return db.session.get(Bike, bike_id)

    return run_with_retry(_op)


def record_sale(
    *,
    bike_id: str,
    client_id: str,
    price_cents: int,
    payment_method: str,
    sale_date: date | None,
    photos: list[str] | None,
    requester: Requester,
) -> Purchase:
    """
    Record a staff sale of a bike to a client.

    One transaction: mark the bike sold to the client, write the Purchase
    snapshot (status "completed"), and add the serial to the client's list.
    """
    def _op():
        bike = db.session.get(Bike, bike_id)
        if not bike:
            raise NotFoundError("Bike not found")
        client = db.session.get(Client, client_id)
        if not client:
            raise NotFoundError("Client not found")

        if bike.status != AVAILABLE:
            raise BikeNotAvailableError(bike_id, bike.status)
        access_policy.require_access(requester, access_policy.BIKES, access_policy.READ, doc=bike)
        require_transition(bike.status, SOLD, via_sale=True)

        now = utcnow()
        try:
            _mark_sold(bike_id, client_id=client.id, client_name=client.name)

            purchase = Purchase(
                bike_id=bike.id,
                brand=bike.brand,
                model=bike.model,
                serial_number=bike.serial_number,
                year=bike.year,
                color=bike.color,
                type=bike.type,
                size=bike.size,
                client_id=client.id,
                client_name=client.name,
                client_email=client.email,
                client_phone=client.phone,
                price_cents=price_cents,
                payment_method=payment_method,
                sale_date=sale_date or now.date(),
                status="completed",
                photos=list(photos or []),
                created_by_user_id=requester.uid,
                created_at=now,
                updated_at=now,
            )
            db.session.add(purchase)

            serials = list(client.bike_serial_numbers or [])
            if bike.serial_number not in serials:
                client.bike_serial_numbers = serials + [bike.serial_number]
            client.updated_at = now

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            "Sale %s recorded: bike %s to client %s for %s cents",
            purchase.id, bike_id, client.id, price_cents,
        )
        return purchase

    return run_with_retry(_op)


def list_recent_sales(*, limit: int = 20, client_id: str | None = None) -> list[Purchase]:
    limit = max(1, min(limit or 20, 100))
    query = db.session.query(Purchase)
    if client_id:
        query = query.filter(Purchase.client_id == client_id)
    return query.order_by(Purchase.created_at.desc(), Purchase.id.asc()).limit(limit).all()


def get_sale(sale_id: str) -> Purchase:
    purchase = db.session.get(Purchase, sale_id)
    if not purchase:
        raise NotFoundError("Sale not found")
    return purchase
