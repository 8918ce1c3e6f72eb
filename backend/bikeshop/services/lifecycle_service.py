# Overview: Bike status values and the transitions allowed between them.

"""
Bike Lifecycle

STATE MACHINE:
    (new) -> available
    available -> sold           purchase / recorded sale only
    available -> maintenance    manual
    maintenance -> available    manual

    sold is terminal.

RULES:
1. Only purchase_service may move a bike to sold, and only from available,
   through a conditional update keyed on the current status.
2. Manual status changes go through change_bike_status() and never reach sold.
3. Generic bike edits cannot write the status column.
"""

from __future__ import annotations
from typing import Literal

from flask import current_app

from ..extensions import db
from ..models import Bike
from bikeshop.time_utils import utcnow
from . import access_policy
from .concurrency import lock_for_update, run_with_retry
from ..validation import NotFoundError


AVAILABLE = "available"
SOLD = "sold"
MAINTENANCE = "maintenance"

VALID_STATUSES = {AVAILABLE, SOLD, MAINTENANCE}
BikeStatus = Literal["available", "sold", "maintenance"]

# Transitions a staff member may request directly
MANUAL_TRANSITIONS = {
    AVAILABLE: {MAINTENANCE},
    MAINTENANCE: {AVAILABLE},
    SOLD: set(),
}

# Transitions performed by the sale path
SALE_TRANSITIONS = {
    AVAILABLE: {SOLD},
}


class LifecycleError(ValueError):
    """Raised when an invalid bike status transition is attempted."""
    pass


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise LifecycleError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def can_transition(from_status: str, to_status: str, *, via_sale: bool = False) -> bool:
    table = SALE_TRANSITIONS if via_sale else MANUAL_TRANSITIONS
    return to_status in table.get(from_status, set())


def require_transition(from_status: str, to_status: str, *, via_sale: bool = False) -> None:
    validate_status(to_status)
    if from_status == to_status:
        raise LifecycleError(f"Bike is already {to_status}")
    if to_status == SOLD and not via_sale:
        raise LifecycleError("Bikes can only be marked sold by recording a sale")
    if not can_transition(from_status, to_status, via_sale=via_sale):
        raise LifecycleError(f"Cannot change bike status from {from_status} to {to_status}")


def change_bike_status(bike_id: str, to_status: str, *, requester: access_policy.Requester) -> Bike:
    """
    Manually move a bike between available and maintenance.

    Requires update access to the bike.
    """
    def _op():
        bike = lock_for_update(db.session.query(Bike).filter_by(id=bike_id)).first()
        if not bike:
            raise NotFoundError("Bike not found")

        access_policy.require_access(requester, access_policy.BIKES, access_policy.UPDATE, doc=bike)
        require_transition(bike.status, to_status)

        from_status = bike.status
        bike.status = to_status
        bike.updated_at = utcnow()
        db.session.commit()
        current_app.logger.info("Bike %s status %s -> %s by %s", bike.id, from_status, to_status, requester.uid)
        return bike

    return run_with_retry(_op)
