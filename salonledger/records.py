"""Client and visit records and their stored document form."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from .errors import ValidationError

NOTES_MAX_LENGTH = 500
DISPLAY_ID_WIDTH = 4

_NON_DIGITS = re.compile(r"\D")


def format_display_id(counter: int) -> str:
    """Zero-pad a client counter; values past 9999 simply get longer."""
    return str(int(counter)).zfill(DISPLAY_ID_WIDTH)


def normalize_phone(phone: str | None) -> str:
    return _NON_DIGITS.sub("", phone or "")


def normalize_name(name: str | None) -> str:
    return (name or "").strip().casefold()


def parse_timestamp(value: Any) -> datetime | None:
    """Read a stored or submitted timestamp as an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid date: {value!r}") from exc
    else:
        raise ValidationError(f"Invalid date: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Visit:
    id: str
    date: datetime
    services: list[str]
    amount: float
    paid: bool = False
    notes: str | None = None
    next_visit: datetime | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Visit":
        return cls(
            id=record.get("id", ""),
            date=parse_timestamp(record.get("date")),
            services=list(record.get("services") or []),
            amount=record.get("amount") or 0,
            paid=bool(record.get("paid", False)),
            notes=record.get("notes"),
            next_visit=parse_timestamp(record.get("nextVisit")),
        )

    @classmethod
    def from_payload(cls, visit_id: str, payload: dict[str, Any]) -> "Visit":
        """Build a new visit from caller input, enforcing the visit form rules."""
        date = parse_timestamp(payload.get("date"))
        if date is None:
            raise ValidationError("Visit date is required.")

        raw_services = payload.get("services") or []
        if not isinstance(raw_services, list):
            raise ValidationError("Services must be a list.")
        services = [str(s).strip() for s in raw_services if str(s).strip()]
        if not services:
            raise ValidationError("Please select at least one service.")

        raw_amount = payload.get("amount")
        if isinstance(raw_amount, bool):
            raise ValidationError("Amount must be a number.")
        try:
            amount = float(raw_amount or 0)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Amount must be a number.") from exc
        if not math.isfinite(amount):
            raise ValidationError("Amount must be a number.")
        if amount < 0:
            raise ValidationError("Amount must be a positive number.")
        if amount.is_integer():
            amount = int(amount)

        paid = payload.get("paid", False)
        if not isinstance(paid, bool):
            raise ValidationError("paid must be true or false.")

        notes = payload.get("notes")
        if notes is not None:
            notes = str(notes)
            if len(notes) > NOTES_MAX_LENGTH:
                raise ValidationError(f"Notes cannot exceed {NOTES_MAX_LENGTH} characters.")

        return cls(
            id=visit_id,
            date=date,
            services=services,
            amount=amount,
            paid=paid,
            notes=notes,
            next_visit=parse_timestamp(payload.get("nextVisit")),
        )

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "date": format_timestamp(self.date),
            "services": list(self.services),
            "amount": self.amount,
            "paid": self.paid,
            "nextVisit": format_timestamp(self.next_visit),
        }
        if self.notes is not None:
            record["notes"] = self.notes
        return record

    def to_dict(self) -> dict[str, Any]:
        return self.to_record()

    def with_paid(self, paid: bool) -> "Visit":
        return replace(self, paid=paid)


def _visit_sort_key(visit: Visit) -> datetime:
    return visit.date or datetime.min.replace(tzinfo=timezone.utc)


def sort_visits(visits: list[Visit]) -> list[Visit]:
    """Newest visit first."""
    return sorted(visits, key=_visit_sort_key, reverse=True)


@dataclass
class Client:
    id: str
    display_id: str
    name: str
    phone: str
    created_at: datetime | None = None
    visits: list[Visit] = field(default_factory=list)

    @classmethod
    def from_document(cls, client_id: str, data: dict[str, Any]) -> "Client":
        """Deserialize a stored client; visits come back newest first."""
        visits = [Visit.from_record(record) for record in data.get("visits") or []]
        return cls(
            id=client_id,
            display_id=data.get("displayId") or "0000",
            name=data.get("name") or "",
            phone=data.get("phone") or "",
            created_at=parse_timestamp(data.get("createdAt")),
            visits=sort_visits(visits),
        )

    def to_dict(self, include_visits: bool = True) -> dict[str, Any]:
        return {
            "id": self.id,
            "displayId": self.display_id,
            "name": self.name,
            "phone": self.phone,
            "createdAt": format_timestamp(self.created_at),
            "visits": [visit.to_dict() for visit in self.visits] if include_visits else [],
        }
