"""Views over a client listing: day schedule, payments, analytics, calendar."""
from __future__ import annotations

from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable

from .records import Client, Visit, format_timestamp

TOP_SERVICES = 6
SEARCH_FIELDS = ("name", "phone", "displayId")


def _client_ref(client: Client) -> dict[str, str]:
    return {"id": client.id, "name": client.name}


def _entries(clients: Iterable[Client]) -> list[tuple[Client, Visit]]:
    return [(client, visit) for client in clients for visit in client.visits]


def _totals(entries: list[tuple[Client, Visit]]) -> tuple[float, float]:
    paid = sum(visit.amount or 0 for _, visit in entries if visit.paid)
    unpaid = sum(visit.amount or 0 for _, visit in entries if not visit.paid)
    return paid, unpaid


def _serialize(entries: list[tuple[Client, Visit]]) -> list[dict[str, Any]]:
    return [{"client": _client_ref(client), "visit": visit.to_dict()} for client, visit in entries]


def day_schedule(clients: Iterable[Client], day: date) -> dict[str, Any]:
    """Visits on ``day`` in time order with paid and unpaid totals."""
    entries = [
        (client, visit)
        for client, visit in _entries(clients)
        if visit.date is not None and visit.date.date() == day
    ]
    entries.sort(key=lambda entry: entry[1].date)
    total_paid, total_unpaid = _totals(entries)
    return {
        "date": day.isoformat(),
        "visits": _serialize(entries),
        "total_paid": total_paid,
        "total_unpaid": total_unpaid,
    }


def payments_summary(
    clients: Iterable[Client],
    start: date | None = None,
    end: date | None = None,
) -> dict[str, Any]:
    """Split visits into paid and unpaid, optionally within a date range.

    ``end`` defaults to ``start``; both bounds are whole days. An ``end``
    without a ``start`` takes everything up to that day.
    """
    entries = _entries(clients)
    if start is not None or end is not None:
        lower = datetime.combine(start, time.min, tzinfo=timezone.utc) if start else None
        upper = datetime.combine(end or start, time.max, tzinfo=timezone.utc)
        entries = [
            (client, visit)
            for client, visit in entries
            if visit.date is not None
            and (lower is None or lower <= visit.date)
            and visit.date <= upper
        ]

    paid = [entry for entry in entries if entry[1].paid]
    unpaid = [entry for entry in entries if not entry[1].paid]
    total_paid, total_unpaid = _totals(entries)
    return {
        "paid": _serialize(paid),
        "unpaid": _serialize(unpaid),
        "total_paid": total_paid,
        "total_unpaid": total_unpaid,
    }


def analytics(clients: list[Client]) -> dict[str, Any]:
    """Revenue from paid visits per month and per week, plus top services."""
    visits = [visit for client in clients for visit in client.visits]
    total_revenue = sum(visit.amount or 0 for visit in visits if visit.paid)

    monthly: dict[date, float] = {}
    weekly: dict[date, float] = {}
    for visit in visits:
        if not visit.paid or visit.date is None:
            continue
        day = visit.date.date()
        month = day.replace(day=1)
        week = day - timedelta(days=day.weekday())  # weeks start on Monday
        monthly[month] = monthly.get(month, 0) + visit.amount
        weekly[week] = weekly.get(week, 0) + visit.amount

    services = Counter(service for visit in visits for service in visit.services)

    return {
        "total_revenue": total_revenue,
        "avg_revenue_per_client": total_revenue / len(clients) if clients else 0,
        "total_visits": len(visits),
        "monthly_revenue": [
            {"period": period.strftime("%b %Y"), "revenue": revenue}
            for period, revenue in sorted(monthly.items())
        ],
        "weekly_revenue": [
            {"period": period.strftime("%b %d, %Y"), "revenue": revenue}
            for period, revenue in sorted(weekly.items())
        ],
        "service_counts": [
            {"name": name, "count": count} for name, count in services.most_common(TOP_SERVICES)
        ],
    }


def upcoming_appointments(clients: Iterable[Client], now: datetime) -> list[dict[str, Any]]:
    """Scheduled next visits after ``now``, soonest first."""
    entries = [
        (client, visit)
        for client, visit in _entries(clients)
        if visit.next_visit is not None and visit.next_visit > now
    ]
    entries.sort(key=lambda entry: entry[1].next_visit)
    return [
        {
            "client": _client_ref(client),
            "visit_id": visit.id,
            "next_visit": format_timestamp(visit.next_visit),
            "services": list(visit.services),
        }
        for client, visit in entries
    ]


def next_appointment(client: Client, now: datetime) -> datetime | None:
    upcoming = [visit.next_visit for visit in client.visits if visit.next_visit and visit.next_visit > now]
    return min(upcoming) if upcoming else None


def payment_status(client: Client) -> str:
    if not client.visits:
        return "N/A"
    return "Unpaid" if any(not visit.paid for visit in client.visits) else "Paid"


def last_visit(client: Client) -> Visit | None:
    dated = [visit for visit in client.visits if visit.date is not None]
    return max(dated, key=lambda visit: visit.date) if dated else None


def search_clients(clients: list[Client], term: str | None, by: str = "name") -> list[Client]:
    """Case-insensitive substring match on ``name``, ``phone`` or ``displayId``."""
    if not term:
        return clients
    if by not in SEARCH_FIELDS:
        by = "name"
    needle = term.lower()
    attribute = {"name": "name", "phone": "phone", "displayId": "display_id"}[by]
    return [client for client in clients if needle in (getattr(client, attribute) or "").lower()]


def client_summary(client: Client, now: datetime, include_visits: bool = True) -> dict[str, Any]:
    """Client payload enriched with the figures the client list shows."""
    latest = last_visit(client)
    upcoming = next_appointment(client, now)
    payload = client.to_dict(include_visits=include_visits)
    payload.update(
        {
            "payment_status": payment_status(client),
            "last_visit": latest.to_dict() if latest and include_visits else None,
            "next_appointment": format_timestamp(upcoming),
        }
    )
    return payload
