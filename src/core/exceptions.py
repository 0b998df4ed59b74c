"""
Domain exceptions for the unified sales ledger.

Validation, authorization, conflict and not-found errors abort the operation
and surface to the caller (the API maps them to 400/403/409/404). Upstream row
and dispatch errors are recovered locally by the sync and queue workers.
"""
from typing import Any, Optional


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    kind = "ledger_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(LedgerError):
    """Malformed input: missing fields, wrong types, empty or zero allocations."""

    kind = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class AuthorizationError(LedgerError):
    """Caller is not a member of the restaurant or lacks the required role."""

    kind = "authorization_error"


class ConflictError(LedgerError):
    """Operation violates a ledger invariant (nested split, sum mismatch)."""

    kind = "conflict"


class NotFoundError(LedgerError):
    """Sale, category or restaurant does not exist in the caller's tenant."""

    kind = "not_found"


class UpstreamRowError(LedgerError):
    """A staging row cannot be mapped onto a ledger row."""

    kind = "upstream_row_error"

    def __init__(self, message: str, row_ref: Optional[str] = None):
        super().__init__(message, {"row": row_ref} if row_ref else None)
        self.row_ref = row_ref


class DispatchError(LedgerError):
    """Outbound job dispatch failed (timeout, transport error, non-2xx)."""

    kind = "dispatch_error"

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message, {"status_code": status_code} if status_code else None)
        self.status_code = status_code
        self.retryable = retryable
