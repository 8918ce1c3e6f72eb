# Overview: Client records: CRUD, lookup and the delete cascade onto bikes.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Bike, Client
from ..validation import NotFoundError
from bikeshop.time_utils import utcnow


CLIENT_MUTABLE_FIELDS = {"name", "phone", "email", "address", "bike_serial_numbers"}


class ClientError(Exception):
    """Raised when a client operation cannot be completed."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def normalize_phone(phone: str | None) -> str:
    """Keep a leading + and digits only, so lookups ignore formatting."""
    phone = (phone or "").strip()
    if not phone:
        return ""
    digits = "".join(ch for ch in phone if ch.isdigit())
    return f"+{digits}" if phone.startswith("+") else digits


def apply_client_patch(client: Client, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CLIENT_MUTABLE_FIELDS:
            continue
        if k == "phone":
            v = normalize_phone(v)
        setattr(client, k, v)


def _load(client_id: str) -> Client:
    client = db.session.get(Client, client_id)
    if not client:
        raise NotFoundError("Client not found")
    return client


def create_client(*, patch: dict) -> Client:
    client = Client(bike_serial_numbers=[])
    apply_client_patch(client, patch)
    if not client.phone:
        raise ClientError("Mobile number is required")
    db.session.add(client)
    db.session.commit()
    return client


def get_client(client_id: str) -> Client:
    return _load(client_id)


def list_clients(*, search: str | None = None, limit: int | None = None) -> list[Client]:
    """Clients ordered by name, optionally filtered by name/phone/email substring."""
    query = db.session.query(Client)
    if search:
        term = search.strip()
        like = f"%{term}%"
        criteria = [Client.name.ilike(like), Client.email.ilike(like), Client.phone.ilike(like)]
        phone = normalize_phone(term)
        if phone and phone != term:
            criteria.append(Client.phone.ilike(f"%{phone}%"))
        query = query.filter(or_(*criteria))
    query = query.order_by(Client.name.asc(), Client.id.asc())
    if limit:
        query = query.limit(min(limit, 100))
    return query.all()


def find_by_phone(phone: str) -> Client | None:
    """Exact match on the normalized phone number (customer lookup)."""
    phone = normalize_phone(phone)
    if not phone:
        return None
    return db.session.query(Client).filter_by(phone=phone).first()


def update_client(client_id: str, *, patch: dict) -> Client:
    client = _load(client_id)
    apply_client_patch(client, patch)
    if not client.phone:
        db.session.rollback()
        raise ClientError("Mobile number is required")
    client.updated_at = utcnow()
    db.session.commit()
    return client


def delete_client(client_id: str) -> int:
    """
    Delete a client and clear the client reference on every bike pointing at it.

    Both writes commit together or not at all; a failure is raised as
    ClientError. Returns the number of bikes that were detached.
    """
    client = _load(client_id)

    try:
        detached = (
            db.session.query(Bike)
            .filter(Bike.client_id == client.id)
            .update(
                {
                    Bike.client_id: None,
                    Bike.client_name: None,
                    Bike.updated_at: utcnow(),
                    Bike.version_id: Bike.version_id + 1,
                },
                synchronize_session="fetch",
            )
        )
        db.session.delete(client)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete client %s", client_id)
        raise ClientError(
            "Client could not be deleted; no changes were made",
            details={"client_id": client_id},
        ) from exc

    current_app.logger.info("Client %s deleted, %s bike(s) detached", client_id, detached)
    return detached
