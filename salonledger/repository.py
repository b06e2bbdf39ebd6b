"""Client repository: per-user client documents and the display-ID counter."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from .errors import AuthRequired, NotFound, StoreUnavailable, ValidationError
from .models import utc_now
from .records import Client, format_display_id, normalize_name, normalize_phone
from .store import DocumentStore, Transaction, document_path

logger = logging.getLogger(__name__)

UPDATABLE_CLIENT_FIELDS = frozenset({"name", "phone"})


@dataclass(frozen=True)
class Scope:
    """The partition of the store owned by one authenticated user."""

    uid: str

    @property
    def clients_path(self) -> str:
        return document_path("users", self.uid, "clients")

    @property
    def metadata_path(self) -> str:
        return document_path("users", self.uid, "data", "_metadata")

    def client_path(self, client_id: str) -> str:
        return document_path(self.clients_path, client_id)


def _display_order(client: Client) -> tuple[int, str]:
    # Longer ids are newer once the counter passes 9999.
    return len(client.display_id), client.display_id


class ClientRepository:
    """Reads and writes the clients of one scope.

    ``scope`` is ``None`` for an unauthenticated caller: reads then come back
    empty and writes raise :class:`AuthRequired`.
    """

    def __init__(
        self,
        store: DocumentStore,
        scope: Scope | None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.scope = scope
        self.clock = clock

    def require_scope(self) -> Scope:
        if self.scope is None:
            raise AuthRequired()
        return self.scope

    def list_clients(self) -> list[Client]:
        if self.scope is None:
            return []
        try:
            documents = self.store.list(
                self.scope.clients_path, order_by="displayId", descending=True
            )
        except StoreUnavailable as exc:
            raise StoreUnavailable("Could not fetch clients.") from exc
        clients = [Client.from_document(doc_id, data) for doc_id, data in documents]
        return sorted(clients, key=_display_order, reverse=True)

    def get_client(self, client_id: str) -> Client | None:
        if self.scope is None:
            return None
        try:
            data = self.store.get(self.scope.client_path(client_id))
        except StoreUnavailable as exc:
            raise StoreUnavailable("Could not fetch client.") from exc
        if data is None:
            return None
        return Client.from_document(client_id, data)

    def add_client(self, name: str, phone: str) -> Client:
        """Create a client and give it the next display id.

        The counter read, the client write and the counter write happen in
        one store transaction, so concurrent calls never share a display id.
        """
        scope = self.require_scope()
        name = (name or "").strip()
        if not name:
            raise ValidationError("Client name is required.")
        phone = (phone or "").strip()

        client_id = self.store.new_id()
        client_path = scope.client_path(client_id)

        def _allocate(txn: Transaction) -> dict[str, Any]:
            metadata = txn.get(scope.metadata_path) or {}
            new_counter = int(metadata.get("clientCounter") or 0) + 1
            record = {
                "displayId": format_display_id(new_counter),
                "name": name,
                "phone": phone,
                "visits": [],
                "createdAt": self.clock().isoformat(),
            }
            txn.set(client_path, record)
            txn.set(scope.metadata_path, {"clientCounter": new_counter}, merge=True)
            return record

        try:
            record = self.store.run_transaction(_allocate)
        except StoreUnavailable as exc:
            raise StoreUnavailable("Failed to add new client. Please try again.") from exc

        logger.info("Created client %s (#%s) for %s", client_id, record["displayId"], scope.uid)
        return Client.from_document(client_id, record)

    def update_client(self, client_id: str, fields: dict[str, Any]) -> Client:
        scope = self.require_scope()
        unknown = set(fields) - UPDATABLE_CLIENT_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        changes = {key: str(value or "").strip() for key, value in fields.items()}
        if "name" in changes and not changes["name"]:
            raise ValidationError("Client name is required.")

        if changes:
            try:
                self.store.update(scope.client_path(client_id), changes)
            except NotFound as exc:
                raise NotFound("Client not found.") from exc
            except StoreUnavailable as exc:
                raise StoreUnavailable("Could not save client.") from exc

        client = self.get_client(client_id)
        if client is None:
            raise NotFound("Could not find updated client")
        return client

    def delete_client(self, client_id: str) -> dict[str, bool]:
        scope = self.require_scope()
        try:
            self.store.delete(scope.client_path(client_id))
        except StoreUnavailable as exc:
            raise StoreUnavailable("Could not delete client.") from exc
        logger.info("Deleted client %s for %s", client_id, scope.uid)
        return {"success": True}

    def find_duplicates(self, name: str | None = None, phone: str | None = None) -> dict[str, list[Client]]:
        """Advisory check for existing clients with the same name or phone.

        Names match after trimming and case folding, phones after stripping
        everything but digits. Nothing stops the caller from adding anyway.
        """
        wanted_name = normalize_name(name)
        wanted_phone = normalize_phone(phone)
        matches: dict[str, list[Client]] = {"name": [], "phone": []}
        if not wanted_name and not wanted_phone:
            return matches

        for client in self.list_clients():
            if wanted_name and normalize_name(client.name) == wanted_name:
                matches["name"].append(client)
            if wanted_phone and normalize_phone(client.phone) == wanted_phone:
                matches["phone"].append(client)
        return matches
