"""Tests for the client, visit and report endpoints."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from salonledger.auth import Role
from salonledger.errors import StoreUnavailable, TransactionConflict


@pytest.fixture
def owner(auth_headers):
    return auth_headers(uid="shop-1", role=Role.OWNER)


@pytest.fixture
def assistant(auth_headers):
    return auth_headers(uid="shop-1", role=Role.ASSISTANT)


def _create(client, headers, name="Jane Doe", phone="555-010-0100", **extra):
    return client.post("/clients", json={"name": name, "phone": phone, **extra}, headers=headers)


def _add_visit(client, headers, client_id, **overrides):
    payload = {"date": "2025-03-01T10:00:00Z", "services": ["Haircut"], "amount": 40, "paid": False}
    payload.update(overrides)
    return client.post(f"/clients/{client_id}/visits", json=payload, headers=headers)


def test_clients_require_login(client) -> None:
    response = client.get("/clients")

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_create_and_list_clients(client, owner) -> None:
    first = _create(client, owner)
    second = _create(client, owner, name="John Roe", phone="555-999-0000")

    assert first.status_code == 201
    assert first.get_json()["client"]["displayId"] == "0001"
    assert first.get_json()["client"]["visits"] == []
    assert second.get_json()["client"]["displayId"] == "0002"

    listing = client.get("/clients", headers=owner).get_json()["clients"]
    assert [c["displayId"] for c in listing] == ["0002", "0001"]
    assert listing[0]["payment_status"] == "N/A"


def test_create_client_form_rules(client, owner) -> None:
    response = _create(client, owner, name="J")
    assert response.status_code == 400
    assert "at least 2" in response.get_json()["message"]

    response = _create(client, owner, phone="555")
    assert response.status_code == 400


def test_create_client_duplicate_check(client, owner) -> None:
    _create(client, owner)

    response = _create(client, owner, name=" jane doe ", phone="555 777 8888")
    assert response.status_code == 409
    body = response.get_json()
    assert body["error"] == "duplicate_client"
    assert body["duplicates"]["name"][0]["displayId"] == "0001"

    response = _create(client, owner, name="Jane Doe", phone="(555) 010-0100", force=True)
    assert response.status_code == 201
    assert response.get_json()["client"]["displayId"] == "0002"


def test_duplicates_endpoint(client, owner) -> None:
    _create(client, owner)

    response = client.get("/clients/duplicates?phone=5550100100", headers=owner)

    assert response.status_code == 200
    assert [c["name"] for c in response.get_json()["phone"]] == ["Jane Doe"]
    assert response.get_json()["name"] == []


def test_search_clients(client, owner) -> None:
    _create(client, owner)
    _create(client, owner, name="John Roe", phone="555-999-0000")

    response = client.get("/clients?q=999&by=phone", headers=owner)

    assert [c["name"] for c in response.get_json()["clients"]] == ["John Roe"]


def test_clients_are_scoped_per_user(client, auth_headers, owner) -> None:
    created = _create(client, owner).get_json()["client"]
    other = auth_headers(uid="shop-2", role=Role.OWNER)

    assert client.get("/clients", headers=other).get_json()["clients"] == []
    assert client.get(f"/clients/{created['id']}", headers=other).status_code == 404


def test_get_update_delete_client(client, owner) -> None:
    created = _create(client, owner).get_json()["client"]

    response = client.get(f"/clients/{created['id']}", headers=owner)
    assert response.status_code == 200
    assert response.get_json()["history_hidden"] is False

    response = client.put(f"/clients/{created['id']}", json={"name": "Janet Doe"}, headers=owner)
    assert response.status_code == 200
    assert response.get_json()["client"]["name"] == "Janet Doe"
    assert response.get_json()["client"]["displayId"] == "0001"

    response = client.delete(f"/clients/{created['id']}", headers=owner)
    assert response.status_code == 200
    assert response.get_json()["success"] is True

    response = client.get(f"/clients/{created['id']}", headers=owner)
    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_update_client_validation(client, owner) -> None:
    created = _create(client, owner).get_json()["client"]

    assert client.put(f"/clients/{created['id']}", json={}, headers=owner).status_code == 400
    assert client.put(f"/clients/{created['id']}", json={"phone": "1"}, headers=owner).status_code == 400
    assert client.put("/clients/missing", json={"name": "Someone"}, headers=owner).status_code == 404


def test_visit_lifecycle(client, owner) -> None:
    created = _create(client, owner).get_json()["client"]
    cid = created["id"]

    response = _add_visit(client, owner, cid, date="2025-01-10T10:00:00Z")
    assert response.status_code == 201
    response = _add_visit(client, owner, cid, date="2025-03-10T10:00:00Z", services=["Color"], amount=90)
    visits = response.get_json()["client"]["visits"]
    assert [v["date"][:10] for v in visits] == ["2025-03-10", "2025-01-10"]

    color_id = visits[0]["id"]
    response = client.put(f"/clients/{cid}/visits/{color_id}/payment", json={"paid": True}, headers=owner)
    assert response.status_code == 200
    assert response.get_json()["visit"]["paid"] is True

    refreshed = client.get(f"/clients/{cid}", headers=owner).get_json()["client"]
    assert [v["paid"] for v in refreshed["visits"]] == [True, False]
    assert refreshed["payment_status"] == "Unpaid"

    for _ in range(2):
        response = client.delete(f"/clients/{cid}/visits/{color_id}", headers=owner)
        assert response.status_code == 200
    refreshed = client.get(f"/clients/{cid}", headers=owner).get_json()["client"]
    assert len(refreshed["visits"]) == 1


def test_visit_errors(client, owner) -> None:
    cid = _create(client, owner).get_json()["client"]["id"]

    response = _add_visit(client, owner, cid, services=[])
    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"

    assert _add_visit(client, owner, "missing").status_code == 404

    response = client.put(f"/clients/{cid}/visits/v-nope/payment", json={"paid": True}, headers=owner)
    assert response.status_code == 404

    response = client.put(f"/clients/{cid}/visits/v-nope/payment", json={"paid": "yes"}, headers=owner)
    assert response.status_code == 400


def test_assistant_can_add_visits_but_not_see_history(client, owner, assistant) -> None:
    cid = _create(client, assistant).get_json()["client"]["id"]

    response = _add_visit(client, assistant, cid)
    assert response.status_code == 201
    assert response.get_json()["client"]["visits"] == []

    response = client.get(f"/clients/{cid}", headers=assistant)
    body = response.get_json()
    assert body["history_hidden"] is True
    assert body["client"]["visits"] == []

    listing = client.get("/clients", headers=assistant).get_json()["clients"]
    assert listing[0]["visits"] == []
    assert listing[0]["last_visit"] is None

    owner_view = client.get(f"/clients/{cid}", headers=owner).get_json()
    assert len(owner_view["client"]["visits"]) == 1
    owner_listing = client.get("/clients", headers=owner).get_json()["clients"]
    assert len(owner_listing[0]["visits"]) == 1
    assert owner_listing[0]["last_visit"] is not None


def test_assistant_upcoming_appointments_omit_services(client, owner, assistant) -> None:
    cid = _create(client, owner).get_json()["client"]["id"]
    soon = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
    _add_visit(client, owner, cid, nextVisit=soon)

    for_owner = client.get("/appointments/upcoming", headers=owner).get_json()["appointments"]
    for_assistant = client.get("/appointments/upcoming", headers=assistant).get_json()["appointments"]

    assert for_owner[0]["services"] == ["Haircut"]
    assert "services" not in for_assistant[0]
    assert for_assistant[0]["client"]["id"] == cid


def test_payments_with_only_end_date(client, owner) -> None:
    cid = _create(client, owner).get_json()["client"]["id"]
    _add_visit(client, owner, cid, date="2025-02-01T10:00:00Z", amount=30, paid=True)
    _add_visit(client, owner, cid, date="2025-04-01T10:00:00Z", amount=70, paid=True)

    payments = client.get("/payments?to=2025-03-01", headers=owner).get_json()

    assert payments["total_paid"] == 30
    assert len(payments["paid"]) == 1


def test_assistant_cannot_delete(client, owner, assistant) -> None:
    cid = _create(client, owner).get_json()["client"]["id"]
    vid = _add_visit(client, owner, cid).get_json()["client"]["visits"][0]["id"]

    assert client.delete(f"/clients/{cid}/visits/{vid}", headers=assistant).status_code == 403
    assert client.delete(f"/clients/{cid}", headers=assistant).status_code == 403


def test_reports(client, owner) -> None:
    cid = _create(client, owner).get_json()["client"]["id"]
    soon = (datetime.now(timezone.utc) + timedelta(days=3)).isoformat()
    _add_visit(client, owner, cid, date="2025-03-15T15:00:00Z", amount=55, paid=True, nextVisit=soon)
    _add_visit(client, owner, cid, date="2025-03-15T09:00:00Z", amount=25)

    dashboard = client.get("/dashboard?date=2025-03-15", headers=owner).get_json()
    assert [entry["visit"]["amount"] for entry in dashboard["visits"]] == [25, 55]
    assert (dashboard["total_paid"], dashboard["total_unpaid"]) == (55, 25)

    payments = client.get("/payments?from=2025-03-01&to=2025-03-31", headers=owner).get_json()
    assert payments["total_paid"] == 55
    assert len(payments["unpaid"]) == 1

    report = client.get("/analytics", headers=owner).get_json()
    assert report["total_revenue"] == 55
    assert report["monthly_revenue"] == [{"period": "Mar 2025", "revenue": 55}]

    upcoming = client.get("/appointments/upcoming", headers=owner).get_json()["appointments"]
    assert len(upcoming) == 1
    assert upcoming[0]["client"]["id"] == cid


def test_report_date_validation(client, owner) -> None:
    assert client.get("/dashboard?date=15-03-2025", headers=owner).status_code == 400
    assert client.get("/payments?from=yesterday", headers=owner).status_code == 400


def test_store_errors_map_to_responses(app, client, owner) -> None:
    store = app.extensions["salonledger.store"]

    with patch.object(store, "_list", side_effect=StoreUnavailable()):
        response = client.get("/clients", headers=owner)
    assert response.status_code == 500
    assert response.get_json() == {"error": "database_error", "message": "Could not fetch clients."}

    with patch.object(store, "run_transaction", side_effect=TransactionConflict()):
        response = _create(client, owner)
    assert response.status_code == 409
    assert response.get_json()["error"] == "conflict"
