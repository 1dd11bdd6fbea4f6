"""
Shared fixtures: a throwaway SQLite database per test, an app wired to it,
and factories for seeding organizations and users.
"""

from __future__ import annotations

import itertools

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

import cti_server.models  # noqa: F401  (populate metadata)
from cti_server.core.identity import issue_dev_token
from cti_server.core.ratelimit import InMemoryRateLimitStore, RateLimiter
from cti_server.main import create_app
from cti_server.models.organization import Organization
from cti_server.models.user import User
from cti_shared.schemas.common import Role


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def rate_limiter():
    return RateLimiter(InMemoryRateLimitStore(), limit=1000, window_seconds=60)


@pytest.fixture
def app(session_factory, rate_limiter):
    return create_app(session_factory=session_factory, rate_limiter=rate_limiter)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_org(session_factory):
    async def _make(name: str = "Acme Security", **fields) -> Organization:
        org = Organization(name=name, **fields)
        async with session_factory() as session:
            session.add(org)
            await session.commit()
        return org

    return _make


@pytest.fixture
def make_user(session_factory):
    counter = itertools.count(1)

    async def _make(
        role: Role = Role.UNASSIGNED,
        org: Organization | None = None,
        *,
        status: str = "active",
        email: str | None = None,
    ) -> User:
        n = next(counter)
        user = User(
            external_subject_id=f"subject-{n}",
            email=email or f"user{n}@example.com",
            first_name=f"User{n}",
            role=role.value,
            organization_id=org.id if org else "",
            status=status,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make


@pytest.fixture
def fetch(session_factory):
    """Re-read a row in a fresh session (None when absent)."""

    async def _fetch(model, ident):
        async with session_factory() as session:
            return await session.get(model, ident)

    return _fetch


@pytest.fixture
def headers():
    def _headers(user: User) -> dict[str, str]:
        token = issue_dev_token(user.external_subject_id, email=user.email)
        return {"Authorization": f"Bearer {token}"}

    return _headers
