"""Add, delete and mark-paid operations on a client's embedded visit list.

Visits are not individually addressable in the store: every mutation loads
the parent client, rewrites its ``visits`` array in memory and writes the
whole array back. The read and the write run in one store transaction, so two
callers editing the same client's visits cannot overwrite each other's
changes; the loser of a race is simply re-run against the fresh document.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable

from .errors import NotFound, StoreUnavailable
from .records import Client, Visit
from .repository import ClientRepository
from .store import Transaction

logger = logging.getLogger(__name__)

# A transform returns the new visit list (stored order) and the caller's result.
VisitTransform = Callable[[list[Visit]], tuple[list[Visit], Any]]


def current_millis() -> int:
    return int(time.time() * 1000)


def make_visit_id(client_id: str, millis: int) -> str:
    # Not checked for collisions: two visits created for the same client in
    # the same millisecond would share an id.
    return f"v{client_id}-{millis}"


class VisitMutator:
    def __init__(
        self,
        repository: ClientRepository,
        millis: Callable[[], int] = current_millis,
    ) -> None:
        self.repository = repository
        self.millis = millis

    def _transform_and_persist(self, client_id: str, transform: VisitTransform) -> Any:
        """Apply ``transform`` to the stored visit list and write it back atomically."""
        scope = self.repository.require_scope()
        path = scope.client_path(client_id)

        def _apply(txn: Transaction) -> Any:
            data = txn.get(path)
            if data is None:
                raise NotFound("Client not found.")
            # Stored order is insertion order; only reads sort by date.
            visits = [Visit.from_record(record) for record in data.get("visits") or []]
            updated, result = transform(visits)
            txn.update(path, {"visits": [visit.to_record() for visit in updated]})
            return result

        try:
            return self.repository.store.run_transaction(_apply)
        except StoreUnavailable as exc:
            raise StoreUnavailable("Could not save visit.") from exc

    def add_visit(self, client_id: str, visit_data: dict[str, Any]) -> Client:
        visit = Visit.from_payload(make_visit_id(client_id, self.millis()), visit_data)

        def _append(visits: list[Visit]) -> tuple[list[Visit], None]:
            return [*visits, visit], None

        self._transform_and_persist(client_id, _append)
        logger.info("Added visit %s to client %s", visit.id, client_id)

        client = self.repository.get_client(client_id)
        if client is None:
            raise NotFound("Client not found.")
        return client

    def update_visit_payment_status(self, client_id: str, visit_id: str, paid: bool) -> Visit:
        def _mark(visits: list[Visit]) -> tuple[list[Visit], Visit]:
            for index, visit in enumerate(visits):
                if visit.id == visit_id:
                    marked = visit.with_paid(bool(paid))
                    return [*visits[:index], marked, *visits[index + 1:]], marked
            raise NotFound("Visit not found.")

        return self._transform_and_persist(client_id, _mark)

    def delete_visit(self, client_id: str, visit_id: str) -> dict[str, bool]:
        """Remove a visit; deleting an id that is already gone is not an error."""

        def _remove(visits: list[Visit]) -> tuple[list[Visit], None]:
            return [visit for visit in visits if visit.id != visit_id], None

        self._transform_and_persist(client_id, _remove)
        return {"success": True}
