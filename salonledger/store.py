"""Document store used by the client repository.

Documents are JSON objects addressed by slash-separated paths such as
``users/<uid>/clients/<client_id>``; a collection is the path of a document
minus its last segment. Two backends share the same semantics:

* :class:`SqlDocumentStore` keeps every document as a row of the
  ``documents`` table through Flask-SQLAlchemy.
* :class:`MemoryDocumentStore` keeps them in a dict guarded by a lock.

Transactions are optimistic. Every document carries a version that each write
bumps; a transaction records the version of everything it reads, buffers its
writes, and commits only if none of those versions moved in the meantime.
Otherwise the callback is re-run, up to ``max_attempts`` times.
"""
from __future__ import annotations

import copy
import logging
import threading
import uuid
from typing import Any, Callable, TypeVar

from sqlalchemy import delete, insert, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import NotFound, StoreUnavailable, TransactionConflict
from .extensions import db
from .models import Document, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TRANSACTION_ATTEMPTS = 5


class _ServerTimestamp:
    """Placeholder replaced by the commit time when a document is written."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def document_path(*segments: str) -> str:
    return "/".join(str(segment).strip("/") for segment in segments)


def split_path(path: str) -> tuple[str, str]:
    """Return ``(collection, doc_id)`` for a document path."""
    collection, _, doc_id = path.rpartition("/")
    if not collection or not doc_id:
        raise ValueError(f"not a document path: {path!r}")
    return collection, doc_id


def _resolve_timestamps(data: dict[str, Any]) -> dict[str, Any]:
    now = utc_now().isoformat()
    return {key: (now if value is SERVER_TIMESTAMP else value) for key, value in data.items()}


class Transaction:
    """Read-then-write unit handed to :meth:`DocumentStore.run_transaction`."""

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store
        # path -> version seen; 0 means the document did not exist.
        self.reads: dict[str, int] = {}
        # path -> document body, or None for a delete.
        self.writes: dict[str, dict[str, Any] | None] = {}

    def get(self, path: str) -> dict[str, Any] | None:
        if path in self.writes:
            return copy.deepcopy(self.writes[path])
        data, version = self._store._read(path)
        self.reads.setdefault(path, version)
        return data

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        body = dict(data)
        if merge:
            current = self.get(path) or {}
            body = {**current, **body}
        self.writes[path] = body

    def update(self, path: str, fields: dict[str, Any]) -> None:
        current = self.get(path)
        if current is None:
            raise NotFound(f"No document at {path}")
        self.writes[path] = {**current, **fields}

    def delete(self, path: str) -> None:
        self.writes[path] = None


class DocumentStore:
    """Behaviour shared by the store backends.

    Subclasses provide ``_read``, ``_list``, ``_commit`` and ``_rollback``.
    """

    def __init__(self, max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS) -> None:
        self.max_attempts = max(1, int(max_attempts))

    # Backend hooks

    def _read(self, path: str) -> tuple[dict[str, Any] | None, int]:
        raise NotImplementedError

    def _list(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        raise NotImplementedError

    def _commit(self, txn: Transaction) -> bool:
        raise NotImplementedError

    def _rollback(self) -> None:
        """Discard backend state left behind by an aborted attempt."""

    def ping(self) -> None:
        """Raise :class:`StoreUnavailable` when the backend cannot be reached."""

    # Public API

    def new_id(self) -> str:
        return uuid.uuid4().hex[:20]

    def get(self, path: str) -> dict[str, Any] | None:
        data, _ = self._read(path)
        return data

    def list(
        self,
        collection: str,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(doc_id, data)`` pairs of a collection.

        When ``order_by`` is given, documents without that field are left out.
        """
        items = self._list(collection)
        if order_by is None:
            return items
        items = [item for item in items if item[1].get(order_by) is not None]
        return sorted(items, key=lambda item: item[1][order_by], reverse=descending)

    def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = self.new_id()
        self.set(document_path(collection, doc_id), data)
        return doc_id

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self.run_transaction(lambda txn: txn.set(path, data, merge=merge))

    def update(self, path: str, fields: dict[str, Any]) -> None:
        self.run_transaction(lambda txn: txn.update(path, fields))

    def delete(self, path: str) -> None:
        self.run_transaction(lambda txn: txn.delete(path))

    def run_transaction(self, callback: Callable[[Transaction], T]) -> T:
        """Run ``callback`` atomically, re-running it on conflicting commits.

        Exceptions raised by the callback abort the transaction and propagate
        unchanged.
        """
        for attempt in range(1, self.max_attempts + 1):
            txn = Transaction(self)
            try:
                result = callback(txn)
            except Exception:
                self._rollback()
                raise
            if self._commit(txn):
                return result
            logger.warning(
                "Transaction conflict on %s (attempt %d/%d)",
                sorted(txn.reads),
                attempt,
                self.max_attempts,
            )
        raise TransactionConflict()


class MemoryDocumentStore(DocumentStore):
    """In-process store; safe to share between threads."""

    def __init__(self, max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS) -> None:
        super().__init__(max_attempts)
        self._lock = threading.Lock()
        self._documents: dict[str, tuple[dict[str, Any], int]] = {}

    def _read(self, path: str) -> tuple[dict[str, Any] | None, int]:
        with self._lock:
            entry = self._documents.get(path)
            if entry is None:
                return None, 0
            data, version = entry
            return copy.deepcopy(data), version

    def _list(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            return [
                (split_path(path)[1], copy.deepcopy(data))
                for path, (data, _) in self._documents.items()
                if split_path(path)[0] == collection
            ]

    def _commit(self, txn: Transaction) -> bool:
        with self._lock:
            for path, seen in txn.reads.items():
                entry = self._documents.get(path)
                if (entry[1] if entry else 0) != seen:
                    return False
            for path, body in txn.writes.items():
                if body is None:
                    self._documents.pop(path, None)
                    continue
                entry = self._documents.get(path)
                version = entry[1] + 1 if entry else 1
                self._documents[path] = (copy.deepcopy(_resolve_timestamps(body)), version)
        return True


class SqlDocumentStore(DocumentStore):
    """Store backed by the ``documents`` table; needs an application context."""

    def _read(self, path: str) -> tuple[dict[str, Any] | None, int]:
        try:
            row = db.session.execute(
                select(Document.data, Document.version).where(Document.path == path)
            ).first()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Failed to read document %s", path)
            raise StoreUnavailable() from exc
        if row is None:
            return None, 0
        return copy.deepcopy(row.data), row.version

    def _list(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        try:
            rows = db.session.execute(
                select(Document.doc_id, Document.data).where(Document.collection == collection)
            ).all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Failed to list collection %s", collection)
            raise StoreUnavailable() from exc
        return [(row.doc_id, copy.deepcopy(row.data)) for row in rows]

    def _current_version(self, path: str) -> int:
        version = db.session.execute(
            select(Document.version).where(Document.path == path)
        ).scalar()
        return version or 0

    def _write(self, path: str, body: dict[str, Any] | None, current: int) -> bool:
        if body is None:
            if current:
                result = db.session.execute(
                    delete(Document).where(Document.path == path, Document.version == current)
                    .execution_options(synchronize_session=False)
                )
                return result.rowcount == 1
            return True

        body = _resolve_timestamps(body)
        if current:
            result = db.session.execute(
                update(Document)
                .where(Document.path == path, Document.version == current)
                .values(data=body, version=current + 1, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

        collection, doc_id = split_path(path)
        db.session.execute(
            insert(Document).values(
                path=path,
                collection=collection,
                doc_id=doc_id,
                data=body,
                version=1,
            )
        )
        return True

    def _commit(self, txn: Transaction) -> bool:
        try:
            for path, seen in txn.reads.items():
                if path not in txn.writes and self._current_version(path) != seen:
                    db.session.rollback()
                    return False
            for path, body in txn.writes.items():
                current = self._current_version(path)
                seen = txn.reads.get(path)
                if seen is not None and current != seen:
                    db.session.rollback()
                    return False
                if not self._write(path, body, current):
                    db.session.rollback()
                    return False
            db.session.commit()
        except IntegrityError:
            # A concurrent writer created one of our new documents first.
            db.session.rollback()
            return False
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Failed to commit document transaction")
            raise StoreUnavailable() from exc
        return True

    def _rollback(self) -> None:
        db.session.rollback()

    def ping(self) -> None:
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailable() from exc


def build_store(config: dict[str, Any]) -> DocumentStore:
    """Create the store selected by ``STORE_BACKEND``."""
    attempts = config.get("STORE_TRANSACTION_ATTEMPTS", DEFAULT_TRANSACTION_ATTEMPTS)
    backend = (config.get("STORE_BACKEND") or "sql").lower()
    if backend == "memory":
        return MemoryDocumentStore(max_attempts=attempts)
    if backend == "sql":
        return SqlDocumentStore(max_attempts=attempts)
    raise ValueError(f"unknown STORE_BACKEND: {backend!r}")

