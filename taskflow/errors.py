"""Caller-visible error taxonomy.

Every service operation either returns a payload or raises exactly one
``ServiceError``. The HTTP layer renders it as ``{"code", "detail"}`` with the
status code attached to the class, so clients can branch on ``code`` instead
of parsing messages.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

class ServiceError(Exception):
    code = "internal"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "detail": self.message}
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

class InvalidArgument(ServiceError):
    code = "invalid_argument"
    status_code = 400

class Unauthenticated(ServiceError):
    code = "unauthenticated"
    status_code = 401

class PermissionDenied(ServiceError):
    code = "permission_denied"
    status_code = 403

class NotFound(ServiceError):
    code = "not_found"
    status_code = 404

class AlreadyExists(ServiceError):
    code = "already_exists"
    status_code = 409

class DeadlineExceeded(ServiceError):
    code = "deadline_exceeded"
    status_code = 410

class FailedPrecondition(ServiceError):
    code = "failed_precondition"
    status_code = 412

class Internal(ServiceError):
    code = "internal"
    status_code = 500

async def service_error_handler(_request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

def _field_name(loc: tuple) -> str:
    # drop the request part ("body", "query", ...) from pydantic's location
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts)

async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = {_field_name(tuple(err.get("loc", ()))): err.get("msg", "invalid value") for err in exc.errors()}
    message = "; ".join(f"{field}: {msg}" for field, msg in problems.items()) or "invalid request"
    error = InvalidArgument(message, details={"fields": sorted(problems)})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())
