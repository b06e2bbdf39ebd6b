"""Error taxonomy shared by the store, the repository and the HTTP layer."""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for every failure raised by the data-access layer."""

    code = "error"
    status = 500
    default_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


class AuthRequired(LedgerError):
    """No authenticated scope for an operation that needs one."""

    code = "unauthorized"
    status = 401
    default_message = "User not authenticated"


class NotFound(LedgerError):
    code = "not_found"
    status = 404
    default_message = "Not found"


class ValidationError(LedgerError):
    code = "invalid_payload"
    status = 400
    default_message = "Invalid payload"


class StoreUnavailable(LedgerError):
    """Transport or backend failure talking to the document store."""

    code = "database_error"
    status = 500
    default_message = "Could not reach the document store."


class TransactionConflict(LedgerError):
    """A store transaction kept conflicting until its retry budget ran out."""

    code = "conflict"
    status = 409
    default_message = "The record was changed by someone else. Please try again."
