"""Database models for the SalonLedger backend."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_account_id() -> str:
    return uuid.uuid4().hex


class Document(db.Model):
    """One document of the document store, addressed by its slash path."""

    __tablename__ = "documents"

    document_id = db.Column(db.Integer, primary_key=True)
    path = db.Column(db.String(512), unique=True, nullable=False)
    collection = db.Column(db.String(512), nullable=False, index=True)
    doc_id = db.Column(db.String(128), nullable=False)
    data = db.Column(db.JSON, nullable=False, default=dict)
    # Bumped on every write; transactions compare it at commit time.
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "id": self.doc_id,
            "data": self.data or {},
            "version": self.version,
        }


class Account(db.Model):
    """Login credentials; ``account_id`` is the scope uid of the owner's data."""

    __tablename__ = "accounts"

    account_id = db.Column(db.String(64), primary_key=True, default=new_account_id)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(100))
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.account_id,
            "email": self.email,
            "name": self.name,
        }
