# src/ECA/errors.py
"""
Domain error taxonomy.

Services raise these; ``ECA.api.errors`` turns them into JSON bodies of the form
``{"message": ..., "code": ..., "errors": {...}?, **extra}``.
"""
from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    status_code: int = 500
    code: str = "domain_error"

    def __init__(self, message: str, *, extra: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.extra: dict[str, Any] = dict(extra or {})

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message, "code": self.code}
        body.update(self.extra)
        return body


class ValidationError(DomainError):
    """Malformed or missing input. ``errors`` is keyed by field name."""
    status_code = 400
    code = "validation_error"

    def __init__(self, message: str = "Invalid data", errors: Optional[dict[str, str]] = None, **kw: Any) -> None:
        super().__init__(message, **kw)
        self.errors: dict[str, str] = dict(errors or {})

    def to_body(self) -> dict[str, Any]:
        body = super().to_body()
        if self.errors:
            body["errors"] = self.errors
        return body


class InvalidReferenceError(DomainError):
    """A referenced id (patron, catalogue entry, status, ...) does not resolve."""
    status_code = 400
    code = "reference_error"

    def __init__(self, field: str, value: Any, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"{field} {value!r} does not exist",
            extra={"field": field, "value": value},
        )
        self.field = field
        self.value = value


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id} not found", extra={"id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(DomainError):
    """Blocked by a business invariant; ``extra`` carries the count or conflicting id."""
    status_code = 409
    code = "conflict"


class TransactionError(DomainError):
    status_code = 500
    code = "transaction_failed"

    def __init__(self, operation: str, entity_id: Any = None) -> None:
        super().__init__(
            f"{operation} failed and was fully rolled back; no changes were applied",
            extra={"operation": operation, "id": entity_id, "rolledBack": True},
        )


class AuthenticationRequired(DomainError):
    status_code = 401
    code = "not_authenticated"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class PermissionDenied(DomainError):
    status_code = 403
    code = "permission_denied"

    def __init__(self, message: str = "Missing required role") -> None:
        super().__init__(message)


__all__ = [
    "DomainError",
    "ValidationError",
    "InvalidReferenceError",
    "NotFoundError",
    "ConflictError",
    "TransactionError",
    "AuthenticationRequired",
    "PermissionDenied",
]
