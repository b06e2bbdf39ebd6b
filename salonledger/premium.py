"""Public "premium" contact requests; the only write that needs no sign-in."""
from __future__ import annotations

import logging
from typing import Any

from werkzeug.security import generate_password_hash

from .errors import StoreUnavailable, ValidationError
from .store import SERVER_TIMESTAMP, DocumentStore, document_path

logger = logging.getLogger(__name__)

PREMIUM_COLLECTION = "premium_requests"
REQUIRED_FIELDS = ("name", "email", "phone")


def add_premium_request(store: DocumentStore, data: dict[str, Any]) -> dict[str, Any]:
    """Record a premium signup request with status ``pending``.

    The optional password is kept only as a werkzeug hash and is never
    returned.
    """
    record: dict[str, Any] = {}
    for key in REQUIRED_FIELDS:
        value = str(data.get(key) or "").strip()
        if not value:
            raise ValidationError(f"{key} is required")
        record[key] = value

    password = data.get("password")
    if password:
        record["password"] = generate_password_hash(str(password))

    record["createdAt"] = SERVER_TIMESTAMP
    record["status"] = "pending"

    try:
        request_id = store.add(PREMIUM_COLLECTION, record)
        saved = store.get(document_path(PREMIUM_COLLECTION, request_id)) or {}
    except StoreUnavailable as exc:
        raise StoreUnavailable("Could not save your details. Please try again.") from exc

    logger.info("Stored premium request %s", request_id)
    saved.pop("password", None)
    return {**saved, "id": request_id}
