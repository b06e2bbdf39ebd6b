"""HTTP routes for the SalonLedger backend."""
from __future__ import annotations

from datetime import date, datetime, timezone

from flask import Blueprint, Flask, current_app, jsonify, make_response, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash

from .auth import (SESSION_COOKIE, Role, check_owner_pin, current_identity,
                   current_scope, issue_token, role_required)
from .errors import LedgerError, StoreUnavailable
from .extensions import db
from .models import Account
from .premium import add_premium_request
from .repository import ClientRepository
from .reports import (analytics, client_summary, day_schedule, payments_summary,
                      search_clients, upcoming_appointments)
from .store import DocumentStore
from .visits import VisitMutator

bp = Blueprint("api", __name__)

STORE_EXTENSION = "salonledger.store"
CLIENT_NAME_MIN_LENGTH = 2
CLIENT_PHONE_MIN_LENGTH = 10


def get_store() -> DocumentStore:
    return current_app.extensions[STORE_EXTENSION]


def get_repository() -> ClientRepository:
    return ClientRepository(get_store(), current_scope())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_day(value: str | None, field: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"{field} must be a YYYY-MM-DD date") from None


def _with_session_cookie(response, token: str):
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=current_app.config["SESSION_COOKIE_MAX_AGE"],
        httponly=True,
        secure=not current_app.debug and not current_app.testing,
    )
    return response


def _validate_client_form(name: str | None, phone: str | None) -> str | None:
    """Form rules for client input; fields passed as None are skipped."""
    if name is not None and len(name) < CLIENT_NAME_MIN_LENGTH:
        return f"Name must be at least {CLIENT_NAME_MIN_LENGTH} characters."
    if phone is not None and len(phone) < CLIENT_PHONE_MIN_LENGTH:
        return "Please enter a valid phone number."
    return None


@bp.app_errorhandler(LedgerError)
def handle_ledger_error(exc: LedgerError):
    if exc.status >= 500:
        current_app.logger.exception(exc.message, exc_info=exc)
    else:
        current_app.logger.warning("%s: %s", exc.code, exc.message)
    return jsonify(exc.to_dict()), exc.status


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured document store.
    ---
    tags:
      - Health
    responses:
      200:
        description: Store connection is ok.
      500:
        description: Store connection failed.
    """
    try:
        get_store().ping()
    except StoreUnavailable as exc:
        current_app.logger.exception("Store connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# Authentication

@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate by email/password and return a token without a role.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Login successful, returns access token and sets the session cookie
      400:
        description: Missing email or password
      401:
        description: Invalid credentials
      500:
        description: Database error
    """
    payload = request.get_json(silent=True) or {}

    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "email and password are required"}),
            400,
        )

    account = Account.query.filter_by(email=email).first()
    if account is None or not check_password_hash(account.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    account.last_login_at = datetime.now(timezone.utc)
    try:
        db.session.add(account)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update last login timestamp", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    token = issue_token(account.account_id)
    response = make_response(jsonify({"token": token, "user": account.to_dict_basic()}), 200)
    return _with_session_cookie(response, token)


@bp.post("/auth/role")
def select_role() -> tuple[dict[str, object], int]:
    """Pick owner or assistant for the current session.
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            role:
              type: string
              enum: [owner, assistant]
            pin:
              type: string
              description: Required for the owner role
    responses:
      200:
        description: New token carrying the role
      400:
        description: Unknown role
      401:
        description: Not signed in, or wrong owner PIN
    """
    identity = current_identity()
    if identity is None:
        return jsonify({"error": "unauthorized", "message": "User not authenticated"}), 401

    payload = request.get_json(silent=True) or {}
    role = Role.parse(payload.get("role"))
    if role is None:
        return jsonify({"error": "invalid_role", "message": "role must be owner or assistant"}), 400

    if role is Role.OWNER and not check_owner_pin(payload.get("pin")):
        current_app.logger.warning("Rejected owner PIN for %s", identity.uid)
        return jsonify({"error": "invalid_pin", "message": "Incorrect PIN. Please try again."}), 401

    token = issue_token(identity.uid, role)
    response = make_response(jsonify({"token": token, "role": role.value}), 200)
    return _with_session_cookie(response, token)


@bp.delete("/auth/session")
def clear_session() -> tuple[dict[str, str], int]:
    response = make_response(jsonify({"status": "success"}), 200)
    response.delete_cookie(SESSION_COOKIE)
    return response


@bp.get("/auth/me")
def who_am_i() -> tuple[dict[str, object], int]:
    identity = current_identity()
    if identity is None:
        return jsonify({"error": "unauthorized", "message": "User not authenticated"}), 401
    return jsonify({"identity": identity.to_dict()}), 200


# Clients

@bp.get("/clients")
@role_required()
def list_clients() -> tuple[dict[str, object], int]:
    """List clients, newest display id first.
    ---
    tags:
      - Clients
    parameters:
      - name: q
        in: query
        type: string
        description: Search term (case-insensitive substring)
      - name: by
        in: query
        type: string
        enum: [name, phone, displayId]
        default: name
    responses:
      200:
        description: Clients with payment status and last visit (no history for assistants)
      500:
        description: Store error
    """
    clients = get_repository().list_clients()
    clients = search_clients(clients, request.args.get("q", "").strip(), request.args.get("by", "name"))
    now = _now()
    is_owner = current_identity().role is Role.OWNER
    return (
        jsonify({"clients": [client_summary(client, now, include_visits=is_owner) for client in clients]}),
        200,
    )


@bp.get("/clients/duplicates")
@role_required()
def check_duplicates() -> tuple[dict[str, object], int]:
    matches = get_repository().find_duplicates(request.args.get("name"), request.args.get("phone"))
    return (
        jsonify({kind: [client.to_dict(include_visits=False) for client in found] for kind, found in matches.items()}),
        200,
    )


@bp.post("/clients")
@role_required()
def create_client() -> tuple[dict[str, object], int]:
    """Create a client with the next display id.
    ---
    tags:
      - Clients
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
              example: Jane Doe
            phone:
              type: string
              example: 555-010-0100
            force:
              type: boolean
              description: Create even when a client with the same name or phone exists
          required:
            - name
            - phone
    responses:
      201:
        description: Client created
      400:
        description: Invalid payload
      409:
        description: Possible duplicate, or the counter kept conflicting
    """
    payload = request.get_json(silent=True) or {}

    name = (payload.get("name") or "").strip()
    phone = (payload.get("phone") or "").strip()
    problem = _validate_client_form(name, phone)
    if problem:
        return jsonify({"error": "invalid_payload", "message": problem}), 400

    repository = get_repository()
    if not payload.get("force"):
        matches = repository.find_duplicates(name, phone)
        if matches["name"] or matches["phone"]:
            return (
                jsonify({
                    "error": "duplicate_client",
                    "message": "A client with this name or phone number already exists",
                    "duplicates": {
                        kind: [client.to_dict(include_visits=False) for client in found]
                        for kind, found in matches.items()
                    },
                }),
                409,
            )

    client = repository.add_client(name, phone)
    return jsonify({"client": client.to_dict()}), 201


@bp.get("/clients/<client_id>")
@role_required()
def get_client(client_id: str) -> tuple[dict[str, object], int]:
    """Client details; assistants get the record without its visit history."""
    client = get_repository().get_client(client_id)
    if client is None:
        return jsonify({"error": "not_found", "message": "Client not found"}), 404

    is_owner = current_identity().role is Role.OWNER
    return (
        jsonify({
            "client": client_summary(client, _now(), include_visits=is_owner),
            "history_hidden": not is_owner,
        }),
        200,
    )


@bp.put("/clients/<client_id>")
@role_required()
def update_client(client_id: str) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    fields = {key: payload[key] for key in ("name", "phone") if key in payload}
    if not fields:
        return jsonify({"error": "invalid_payload", "message": "name or phone is required"}), 400

    problem = _validate_client_form(
        str(fields["name"] or "").strip() if "name" in fields else None,
        str(fields["phone"] or "").strip() if "phone" in fields else None,
    )
    if problem:
        return jsonify({"error": "invalid_payload", "message": problem}), 400

    client = get_repository().update_client(client_id, fields)
    return jsonify({"client": client.to_dict()}), 200


@bp.delete("/clients/<client_id>")
@role_required(Role.OWNER)
def delete_client(client_id: str) -> tuple[dict[str, object], int]:
    result = get_repository().delete_client(client_id)
    return jsonify({**result, "message": "Client deleted successfully"}), 200


# Visits

@bp.post("/clients/<client_id>/visits")
@role_required()
def add_visit(client_id: str) -> tuple[dict[str, object], int]:
    """Append a visit to a client.
    ---
    tags:
      - Visits
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            date:
              type: string
              format: date-time
            services:
              type: array
              items:
                type: string
            amount:
              type: number
            paid:
              type: boolean
            notes:
              type: string
              maxLength: 500
            nextVisit:
              type: string
              format: date-time
    responses:
      201:
        description: Visit added; returns the refreshed client
      400:
        description: Invalid visit
      404:
        description: Client not found
    """
    payload = request.get_json(silent=True) or {}
    client = VisitMutator(get_repository()).add_visit(client_id, payload)
    is_owner = current_identity().role is Role.OWNER
    return jsonify({"client": client.to_dict(include_visits=is_owner)}), 201


@bp.put("/clients/<client_id>/visits/<visit_id>/payment")
@role_required()
def update_visit_payment(client_id: str, visit_id: str) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    paid = payload.get("paid")
    if not isinstance(paid, bool):
        return jsonify({"error": "invalid_payload", "message": "paid must be true or false"}), 400

    visit = VisitMutator(get_repository()).update_visit_payment_status(client_id, visit_id, paid)
    return jsonify({"visit": visit.to_dict()}), 200


@bp.delete("/clients/<client_id>/visits/<visit_id>")
@role_required(Role.OWNER)
def delete_visit(client_id: str, visit_id: str) -> tuple[dict[str, object], int]:
    result = VisitMutator(get_repository()).delete_visit(client_id, visit_id)
    return jsonify(result), 200


# Reports

@bp.get("/dashboard")
@role_required(Role.OWNER)
def dashboard() -> tuple[dict[str, object], int]:
    """Visits on one day (default today) with paid/unpaid totals."""
    try:
        day = _parse_day(request.args.get("date"), "date") or _now().date()
    except ValueError as exc:
        return jsonify({"error": "invalid_parameters", "message": str(exc)}), 400
    return jsonify(day_schedule(get_repository().list_clients(), day)), 200


@bp.get("/payments")
@role_required(Role.OWNER)
def payments() -> tuple[dict[str, object], int]:
    try:
        start = _parse_day(request.args.get("from"), "from")
        end = _parse_day(request.args.get("to"), "to")
    except ValueError as exc:
        return jsonify({"error": "invalid_parameters", "message": str(exc)}), 400
    return jsonify(payments_summary(get_repository().list_clients(), start, end)), 200


@bp.get("/analytics")
@role_required(Role.OWNER)
def get_analytics() -> tuple[dict[str, object], int]:
    return jsonify(analytics(get_repository().list_clients())), 200


@bp.get("/appointments/upcoming")
@role_required()
def get_upcoming_appointments() -> tuple[dict[str, object], int]:
    appointments = upcoming_appointments(get_repository().list_clients(), _now())
    if current_identity().role is not Role.OWNER:
        # Services come from the visit history.
        for appointment in appointments:
            appointment.pop("services", None)
    return jsonify({"appointments": appointments}), 200


# Premium

@bp.post("/premium-requests")
def create_premium_request() -> tuple[dict[str, object], int]:
    """Record a premium signup request (public).
    ---
    tags:
      - Premium
    responses:
      201:
        description: Request stored with status pending
      400:
        description: name, email and phone are required
    """
    payload = request.get_json(silent=True) or {}
    saved = add_premium_request(get_store(), payload)
    return jsonify({"request": saved}), 201


def register_routes(app: Flask) -> None:
    app.register_blueprint(bp)
