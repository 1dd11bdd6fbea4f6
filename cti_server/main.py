"""
Incident Tracker API Server

Entry point for the FastAPI application.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cti_server.core.config import get_settings
from cti_server.core.database import async_session_factory
from cti_server.core.errors import register_exception_handlers
from cti_server.core.identity import IdentityResolver, TokenVerifier, build_verifier
from cti_server.core.middleware import RequestGateMiddleware, SecurityHeadersMiddleware
from cti_server.core.ratelimit import RateLimiter, build_rate_limiter
from cti_server.api.v1 import router as api_v1_router

settings = get_settings()
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Incident Tracker starting", debug=settings.debug)
    yield
    log.info("Incident Tracker shutting down")
    await app.state.rate_limiter.store.close()


def create_app(
    *,
    session_factory=None,
    verifier: Optional[TokenVerifier] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Incident Tracker",
        description="Multi-tenant security incident and threat intelligence tracking.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.session_factory = session_factory or async_session_factory
    app.state.identity_resolver = IdentityResolver(
        verifier or build_verifier(settings), app.state.session_factory
    )
    app.state.rate_limiter = rate_limiter or build_rate_limiter(settings)

    # Middleware (last added is outermost)
    app.add_middleware(RequestGateMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app)

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        return {"status": "ready"}

    @app.get("/server-time", tags=["System"])
    async def server_time():
        return {"currentTime": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()
