# Overview: Bike row locking and the retry wrapper used by sales and status changes.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """SELECT ... FOR UPDATE on the bike row (a no-op on SQLite)."""
    return query.with_for_update()


def run_with_retry(operation, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a sale or status change, rolling back and retrying when the bike row
    was locked or its version moved underneath us.

    LifecycleError, BikeNotAvailableError and other domain errors are raised
    on the first attempt.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                current_app.logger.error("Giving up after %s attempts: %s", attempts, exc.__class__.__name__)
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            current_app.logger.warning(
                "Bike write conflict (%s), retry %s/%s in %.2fs",
                exc.__class__.__name__, attempt, attempts - 1, delay,
            )
            time.sleep(delay)
