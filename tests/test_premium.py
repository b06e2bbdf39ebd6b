"""Tests for premium signup requests."""
from __future__ import annotations

import pytest
from werkzeug.security import check_password_hash

from salonledger.errors import ValidationError
from salonledger.premium import PREMIUM_COLLECTION, add_premium_request

PAYLOAD = {"name": "Jane Doe", "email": "jane@example.com", "phone": "555-010-0100"}


def test_add_premium_request_is_pending(memory_store) -> None:
    saved = add_premium_request(memory_store, {**PAYLOAD, "password": "hunter22"})

    assert saved["status"] == "pending"
    assert saved["name"] == "Jane Doe"
    assert saved["createdAt"]
    assert "password" not in saved

    stored = memory_store.get(f"{PREMIUM_COLLECTION}/{saved['id']}")
    assert stored["password"] != "hunter22"
    assert check_password_hash(stored["password"], "hunter22")


def test_password_is_optional(memory_store) -> None:
    saved = add_premium_request(memory_store, PAYLOAD)
    stored = memory_store.get(f"{PREMIUM_COLLECTION}/{saved['id']}")
    assert "password" not in stored


@pytest.mark.parametrize("missing", ["name", "email", "phone"])
def test_required_fields(memory_store, missing) -> None:
    payload = {key: value for key, value in PAYLOAD.items() if key != missing}
    with pytest.raises(ValidationError):
        add_premium_request(memory_store, payload)
    assert memory_store.list(PREMIUM_COLLECTION) == []


def test_premium_route_is_public(client) -> None:
    response = client.post("/premium-requests", json=PAYLOAD)

    assert response.status_code == 201
    body = response.get_json()["request"]
    assert body["status"] == "pending"
    assert body["email"] == "jane@example.com"


def test_premium_route_validation(client) -> None:
    response = client.post("/premium-requests", json={"name": "Jane"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"
