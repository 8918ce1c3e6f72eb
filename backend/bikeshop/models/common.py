from __future__ import annotations

import uuid


def new_id() -> str:
    """Opaque document identifier (32 hex chars)."""
    return uuid.uuid4().hex


def id_column(db):
    return db.Column(db.String(32), primary_key=True, default=new_id)
