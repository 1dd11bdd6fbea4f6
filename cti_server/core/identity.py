"""
Identity resolver: bearer credential -> verified subject -> application user.

Token verification is delegated to a ``TokenVerifier``:
- ``JWTTokenVerifier``  — HMAC-signed tokens checked against ``token_secret``
  (local development, tests, service-to-service).
- ``JWKSTokenVerifier`` — tokens signed by the identity provider, keys
  fetched from its JWKS endpoint.

Resolution has no side effects. Provisioning new users is the job of the
registration flow, not of this module.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

import jwt
import structlog
from jwt.exceptions import PyJWKClientConnectionError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from cti_server.core.config import Settings, get_settings
from cti_server.core.errors import (
    ExpiredCredential,
    InternalError,
    InvalidCredential,
    MissingCredential,
    UserNotProvisioned,
)
from cti_server.models.user import User

log = structlog.get_logger()

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class VerifiedIdentity:
    subject: str
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def email(self) -> Optional[str]:
        return self.claims.get("email")


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> VerifiedIdentity:
        """Return the verified identity or raise Invalid/ExpiredCredential."""


# ---------------------------------------------------------------------------
# Verifiers
# ---------------------------------------------------------------------------

def _decode_options(settings: Settings) -> dict[str, Any]:
    options: dict[str, Any] = {"require": ["sub", "exp"]}
    kwargs: dict[str, Any] = {"options": options}
    if settings.token_audience:
        kwargs["audience"] = settings.token_audience
    else:
        options["verify_aud"] = False
    if settings.token_issuer:
        kwargs["issuer"] = settings.token_issuer
    return kwargs


def _identity_from_payload(payload: dict[str, Any]) -> VerifiedIdentity:
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidCredential()
    return VerifiedIdentity(subject=subject, claims=payload)


class JWTTokenVerifier:
    """Verify HMAC-signed JWTs with the shared ``token_secret``."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def verify(self, token: str) -> VerifiedIdentity:
        try:
            payload = jwt.decode(
                token,
                self.settings.token_secret,
                algorithms=[self.settings.token_algorithm],
                **_decode_options(self.settings),
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredCredential()
        except jwt.PyJWTError:
            raise InvalidCredential()
        return _identity_from_payload(payload)


class JWKSTokenVerifier:
    """Verify identity-provider tokens against the provider's published keys."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client = jwt.PyJWKClient(self.settings.token_jwks_url)

    async def verify(self, token: str) -> VerifiedIdentity:
        try:
            # PyJWKClient does blocking HTTP on cache misses
            signing_key = await asyncio.to_thread(self._client.get_signing_key_from_jwt, token)
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=[self.settings.token_algorithm],
                **_decode_options(self.settings),
            )
        except PyJWKClientConnectionError as exc:
            log.error("auth.jwks_unavailable", error=str(exc))
            raise InternalError("Identity provider is unavailable")
        except jwt.ExpiredSignatureError:
            raise ExpiredCredential()
        except jwt.PyJWTError:
            raise InvalidCredential()
        return _identity_from_payload(payload)


def build_verifier(settings: Optional[Settings] = None) -> TokenVerifier:
    settings = settings or get_settings()
    if settings.token_jwks_url:
        return JWKSTokenVerifier(settings)
    return JWTTokenVerifier(settings)


def issue_dev_token(
    subject: str,
    *,
    email: Optional[str] = None,
    expires_delta: timedelta | None = None,
    settings: Optional[Settings] = None,
) -> str:
    """Sign a token the local ``JWTTokenVerifier`` accepts (dev tooling and tests)."""
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": subject,
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.token_expire_minutes)),
    }
    if email:
        payload["email"] = email
    if settings.token_audience:
        payload["aud"] = settings.token_audience
    if settings.token_issuer:
        payload["iss"] = settings.token_issuer
    return jwt.encode(payload, settings.token_secret, algorithm=settings.token_algorithm)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

def extract_bearer(authorization: Optional[str]) -> str:
    """Pull the token out of an ``Authorization`` header value."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise MissingCredential()
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token or " " in token:
        raise MissingCredential("Invalid authorization header format")
    return token


class IdentityResolver:
    """Turns a bearer credential into a verified subject and its User record."""

    def __init__(self, verifier: TokenVerifier, session_factory):
        self.verifier = verifier
        self.session_factory = session_factory

    async def resolve(self, authorization: Optional[str]) -> VerifiedIdentity:
        token = extract_bearer(authorization)
        return await self.verifier.verify(token)

    async def lookup_user(
        self, subject: str, session: Optional[AsyncSession] = None
    ) -> User:
        if session is None:
            async with self.session_factory() as own_session:
                return await self.lookup_user(subject, own_session)

        result = await session.execute(
            select(User).where(User.external_subject_id == subject)
        )
        user = result.scalar_one_or_none()
        if not user:
            raise UserNotProvisioned()
        return user
