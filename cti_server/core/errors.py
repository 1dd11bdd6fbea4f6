"""
Error taxonomy and the FastAPI handlers that render it.

Every failure surfaced to a client is an ``ApiError`` subclass and is rendered
as ``{"error": <code>, "message": <text>, "details": <optional>}``.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from cti_shared.schemas.common import DenyReason

log = structlog.get_logger()


class ApiError(Exception):
    status_code: int = 500
    error: str = "Internal"
    message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, *, details: Any = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_body(self) -> dict:
        body = {"error": self.error, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body

    def headers(self) -> Optional[dict[str, str]]:
        return None


# ---------------------------------------------------------------------------
# 401: authentication
# ---------------------------------------------------------------------------

class AuthenticationError(ApiError):
    status_code = 401
    error = "AuthenticationFailed"
    message = "Unable to verify authentication credential"

    def headers(self) -> Optional[dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class MissingCredential(AuthenticationError):
    error = "MissingCredential"
    message = "No valid bearer credential was supplied"


class InvalidCredential(AuthenticationError):
    error = "InvalidCredential"
    message = "The supplied credential is invalid"


class ExpiredCredential(AuthenticationError):
    error = "ExpiredCredential"
    message = "The supplied credential has expired"


class UserNotProvisioned(AuthenticationError):
    error = "UserNotProvisioned"
    message = "No user record exists for this identity; complete registration first"


class AccountDisabled(AuthenticationError):
    error = "AccountDisabled"
    message = "This account has been deactivated"


# ---------------------------------------------------------------------------
# 403: authorization
# ---------------------------------------------------------------------------

class ForbiddenError(ApiError):
    status_code = 403

    def __init__(self, reason: DenyReason, message: Optional[str] = None, *, details: Any = None):
        self.reason = reason
        self.error = reason.value
        super().__init__(message or f"Action denied: {reason.value}", details=details)


# ---------------------------------------------------------------------------
# Everything else
# ---------------------------------------------------------------------------

class ValidationFailed(ApiError):
    status_code = 400
    error = "ValidationError"
    message = "The request is invalid"


class NotFoundError(ApiError):
    status_code = 404
    error = "NotFound"
    message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    error = "Conflict"
    message = "The request conflicts with the current state of the resource"


class RateLimited(ApiError):
    status_code = 429
    error = "RateLimited"
    message = "Too many requests"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message, details={"retry_after": retry_after})

    def headers(self) -> Optional[dict[str, str]]:
        return {"Retry-After": str(self.retry_after)}


class InternalError(ApiError):
    status_code = 500
    error = "Internal"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def error_response(exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body(),
        headers=exc.headers(),
    )


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.failed", path=request.url.path, error=exc.error)
    return error_response(exc)


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return error_response(ValidationFailed(details=errors))


async def _store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    log.error("request.store_failed", path=request.url.path, error=str(exc))
    return error_response(InternalError("The data store is unavailable"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, _store_error_handler)
