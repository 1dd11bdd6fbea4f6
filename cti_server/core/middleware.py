"""
Request pipeline middleware: the Request Gate and security headers.
"""

from __future__ import annotations

from typing import Iterable

import structlog
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from cti_server.core.auth import AuthenticatedContext
from cti_server.core.errors import (
    AccountDisabled,
    AuthenticationError,
    InternalError,
    error_response,
)
from cti_shared.schemas.common import UserStatus

log = structlog.get_logger()

# Routes reachable without a credential.
EXEMPT_PATHS = frozenset({
    "/health",
    "/ready",
    "/server-time",
    "/api/v1/users/register",
    "/docs",
    "/redoc",
    "/openapi.json",
})

# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cache-Control": "no-store",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        return response


# ---------------------------------------------------------------------------
# Request Gate
# ---------------------------------------------------------------------------

class RequestGateMiddleware(BaseHTTPMiddleware):
    """
    Resolve the caller before any handler runs.

    Unauthenticated -> (credential resolved) -> Authenticated -> handler.
    Exempt paths and CORS pre-flights pass through untouched. Any resolver
    failure short-circuits with a 401 (500 when the store or identity provider
    is unavailable) and the handler is never invoked.
    Nothing is carried between requests.
    """

    def __init__(self, app, exempt_paths: Iterable[str] = EXEMPT_PATHS):
        super().__init__(app)
        self.exempt_paths = frozenset(exempt_paths)

    def is_exempt(self, request: Request) -> bool:
        if request.method == "OPTIONS":
            return True
        return (request.url.path.rstrip("/") or "/") in self.exempt_paths

    async def dispatch(self, request: Request, call_next) -> Response:
        if self.is_exempt(request):
            return await call_next(request)

        resolver = request.app.state.identity_resolver
        try:
            identity = await resolver.resolve(request.headers.get("Authorization"))
            user = await resolver.lookup_user(identity.subject)
            if user.status != UserStatus.ACTIVE.value:
                raise AccountDisabled()
        except AuthenticationError as exc:
            log.info("auth.rejected", path=request.url.path, error=exc.error)
            return error_response(exc)
        except InternalError as exc:
            return error_response(exc)
        except SQLAlchemyError as exc:
            log.error("auth.lookup_failed", path=request.url.path, error=str(exc))
            return error_response(InternalError("Unable to resolve caller"))

        request.state.caller = AuthenticatedContext(user=user, subject=identity.subject)
        return await call_next(request)
