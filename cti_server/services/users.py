"""
User service — registration, profiles and member administration.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from cti_server.core.auth import AuthenticatedContext, authorize
from cti_server.core.config import Settings, get_settings
from cti_server.core.errors import ConflictError, NotFoundError, ValidationFailed
from cti_server.core.identity import VerifiedIdentity
from cti_server.core.policy import Action, Resource
from cti_server.models.base import utcnow
from cti_server.models.organization import Organization
from cti_server.models.user import User
from cti_shared.schemas.common import Role, UserStatus
from cti_shared.schemas.users import ProfileUpdateRequest, RegisterRequest

log = structlog.get_logger()


async def register_user(
    identity: VerifiedIdentity,
    req: RegisterRequest,
    session: AsyncSession,
    settings: Optional[Settings] = None,
) -> User:
    """Provision the application user for a verified identity.

    The very first user becomes admin of a freshly created default
    organization; everyone after that starts unassigned.
    """
    settings = settings or get_settings()

    existing = await session.execute(
        select(User).where(User.external_subject_id == identity.subject)
    )
    if existing.scalar_one_or_none():
        raise ConflictError("User is already registered")

    email = req.email or identity.email
    if not email:
        raise ValidationFailed("An email address is required")
    email = email.lower()

    taken = await session.execute(select(User).where(User.email == email))
    if taken.scalar_one_or_none():
        raise ConflictError("Email is already registered")

    any_user = await session.execute(select(User.id).limit(1))
    is_first = any_user.first() is None

    user = User(
        external_subject_id=identity.subject,
        email=email,
        first_name=req.first_name,
        last_name=req.last_name,
        profile_picture_url=req.profile_picture_url,
        role=Role.UNASSIGNED.value,
        last_login_at=utcnow(),
    )
    if is_first:
        org = Organization(name=settings.default_org_name)
        session.add(org)
        user.organization_id = org.id
        user.role = Role.ADMIN.value

    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        # Concurrent registration of the same subject or email
        await session.rollback()
        raise ConflictError("User is already registered")

    log.info("user.registered", user_id=user.id, first_user=is_first, role=user.role)
    return user


async def update_profile(
    req: ProfileUpdateRequest, auth: AuthenticatedContext, session: AsyncSession
) -> User:
    authorize(auth, Action.UPDATE_OWN_PROFILE)
    user = await session.get(User, auth.user_id)
    if not user:
        raise NotFoundError("User not found")

    for field, value in req.model_dump(exclude_unset=True).items():
        if value is None and field != "profile_picture_url":
            continue
        setattr(user, field, value)

    session.add(user)
    await session.flush()
    log.info("user.profile_updated", user_id=user.id)
    return user


async def list_org_users(
    auth: AuthenticatedContext, session: AsyncSession
) -> list[User]:
    """List every member of the caller's organization."""
    authorize(auth, Action.LIST_MEMBERS, auth.own_org)
    result = await session.execute(
        select(User)
        .where(User.organization_id == auth.organization_id)
        .order_by(User.created_at)
    )
    return list(result.scalars().all())


async def get_user(
    user_id: str, auth: AuthenticatedContext, session: AsyncSession
) -> User:
    """A member profile; users outside the caller's organization are not found."""
    user = await session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.id != auth.user_id and (
        not auth.organization_id or user.organization_id != auth.organization_id
    ):
        raise NotFoundError("User not found")
    authorize(
        auth,
        Action.VIEW_USER,
        Resource(organization_id=user.organization_id, owner_user_id=user.id),
    )
    return user


async def set_user_status(
    user_id: str,
    status: UserStatus,
    auth: AuthenticatedContext,
    session: AsyncSession,
) -> User:
    """Activate or deactivate a member (admin, never on themself)."""
    user = await session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    authorize(
        auth,
        Action.UPDATE_USER_STATUS,
        Resource(organization_id=user.organization_id, owner_user_id=user.id),
    )

    user.status = status.value
    session.add(user)
    await session.flush()

    log.info("user.status_changed", user_id=user.id, status=status.value, by=auth.user_id)
    return user
