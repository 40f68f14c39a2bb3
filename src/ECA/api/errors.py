# src/ECA/api/errors.py
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from ECA.app_logger import get_logger
from ECA.errors import DomainError

log = get_logger("api")

# PostgreSQL SQLSTATE -> (status, code, message)
_SQLSTATE = {
    "23505": (409, "conflict", "Unique constraint violation"),
    "23503": (400, "reference_error", "Foreign key constraint failed"),
    "23502": (400, "validation_error", "Missing required field (NOT NULL violation)"),
    "23514": (400, "validation_error", "Check constraint failed"),
}


def _field_key(loc) -> str:
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts) or "body"


def classify_integrity_error(exc: IntegrityError) -> tuple[int, str, str]:
    """
    Map DB integrity errors to clear 4xx responses instead of 500.
    - Unique constraint -> 409
    - Foreign key -> 400 reference_error
    - Not-null / Check -> 400 validation_error
    - Otherwise -> 400
    """
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _SQLSTATE:
        return _SQLSTATE[sqlstate]

    # string heuristics for drivers without SQLSTATE (sqlite)
    low = str(orig or exc).lower()
    if "unique constraint" in low or "duplicate key" in low:
        return _SQLSTATE["23505"]
    if "foreign key" in low:
        return _SQLSTATE["23503"]
    if "not null" in low or "null value in column" in low:
        return _SQLSTATE["23502"]
    if "check constraint" in low:
        return _SQLSTATE["23514"]
    return 400, "integrity_error", "Integrity error"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors: dict[str, str] = {}
        for err in exc.errors():
            errors.setdefault(_field_key(err.get("loc", ())), err.get("msg", "invalid"))
        log.warning("%s %s rejected: %s", request.method, request.url.path, errors)
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid data", "code": "validation_error", "errors": errors},
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        status_code, code, message = classify_integrity_error(exc)
        log.warning("%s %s integrity error (%s): %s", request.method, request.url.path, code, exc.orig)
        return JSONResponse(status_code=status_code, content={"message": message, "code": code})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error", "code": "internal_error"},
        )
