"""Session tokens and the owner/assistant role gate."""
from __future__ import annotations

import enum
import hmac
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable

from flask import current_app, g, jsonify, request
from itsdangerous import BadSignature, URLSafeTimedSerializer

from .repository import Scope

SESSION_COOKIE = "session"
TOKEN_SALT = "auth-token"


class Role(str, enum.Enum):
    OWNER = "owner"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, value: Any) -> "Role | None":
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class Identity:
    uid: str
    role: Role | None = None

    @property
    def scope(self) -> Scope:
        return Scope(self.uid)

    def to_dict(self) -> dict[str, str | None]:
        return {"uid": self.uid, "role": self.role.value if self.role else None}


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def issue_token(uid: str, role: Role | None = None) -> str:
    return _serializer().dumps({"uid": uid, "role": role.value if role else None})


def _read_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get(SESSION_COOKIE)


def current_identity() -> Identity | None:
    """Identity carried by the bearer token or session cookie, if valid."""
    if "identity" in g:
        return g.identity

    identity = None
    token = _read_token()
    if token:
        try:
            payload = _serializer().loads(token, max_age=current_app.config["TOKEN_MAX_AGE"])
        except BadSignature:
            # Invalid or expired token
            payload = None
        if isinstance(payload, dict) and payload.get("uid"):
            identity = Identity(uid=str(payload["uid"]), role=Role.parse(payload.get("role")))

    g.identity = identity
    return identity


def current_scope() -> Scope | None:
    identity = current_identity()
    return identity.scope if identity else None


def check_owner_pin(pin: Any) -> bool:
    expected = str(current_app.config.get("OWNER_PIN") or "")
    return bool(expected) and hmac.compare_digest(str(pin or ""), expected)


def role_required(*roles: Role) -> Callable:
    """Reject callers that are signed out, have no role, or hold another role.

    With no arguments any selected role is accepted.
    """

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapper(*args: Any, **kwargs: Any):
            identity = current_identity()
            if identity is None:
                return jsonify({"error": "unauthorized", "message": "User not authenticated"}), 401
            if identity.role is None:
                return jsonify({"error": "role_required", "message": "Select a role first"}), 403
            if roles and identity.role not in roles:
                return (
                    jsonify({"error": "forbidden", "message": f"{identity.role.value} cannot access this resource"}),
                    403,
                )
            return view(*args, **kwargs)

        return wrapper

    return decorator
