"""
Organization lifecycle: every operation that changes who belongs to an
organization, or whether it exists at all.

Nothing else may change ``User.organization_id`` / ``User.role`` or delete
an organization. Each operation:
  1. reloads the caller from the store (the request context may be stale),
  2. asks the policy engine,
  3. checks the admin-retention precondition,
  4. compare-and-sets ``Organization.version``,
  5. commits once; any failure rolls everything back.

Admin retention: an organization with at least one other member must keep at
least one admin.
"""

from __future__ import annotations

from typing import Optional, Sequence

import structlog
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from cti_server.core.auth import authorize, enforce
from cti_server.core.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    UserNotProvisioned,
    ValidationFailed,
)
from cti_server.core.policy import Action, Caller, Decision, Resource, ALLOW, deny
from cti_server.models.base import utcnow
from cti_server.models.incident import Incident
from cti_server.models.organization import Organization
from cti_server.models.threat_actor import ThreatActor
from cti_server.models.user import User
from cti_shared.schemas.common import ASSIGNABLE_ROLES, DenyReason, Role
from cti_shared.schemas.organizations import OrgCreateRequest

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Preconditions (pure)
# ---------------------------------------------------------------------------

def check_admin_retention(
    members: Sequence[User],
    target_user_id: str,
    new_role: Optional[Role],
) -> Decision:
    """Would this change leave other members without an admin?

    ``new_role=None`` means the target leaves the organization.
    """
    target = next((m for m in members if m.id == target_user_id), None)
    if target is None or target.role != Role.ADMIN.value:
        return ALLOW
    if new_role == Role.ADMIN:
        return ALLOW

    others = [m for m in members if m.id != target_user_id]
    if others and not any(m.role == Role.ADMIN.value for m in others):
        return deny(
            DenyReason.ADMIN_REQUIREMENT_VIOLATED,
            "The organization must keep at least one admin while it has other members; "
            "promote another member to admin first",
        )
    return ALLOW


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------

def as_caller(user: User) -> Caller:
    return Caller(user_id=user.id, role=Role(user.role), organization_id=user.organization_id or "")


async def load_caller(caller_id: str, session: AsyncSession) -> User:
    user = await session.get(User, caller_id)
    if not user:
        raise UserNotProvisioned()
    return user


async def load_org(org_id: str, session: AsyncSession) -> Organization:
    org = await session.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found")
    return org


async def list_members(org_id: str, session: AsyncSession) -> list[User]:
    result = await session.execute(select(User).where(User.organization_id == org_id))
    return list(result.scalars().all())


async def load_member(org_id: str, user_id: str, session: AsyncSession) -> User:
    result = await session.execute(
        select(User).where(User.id == user_id, User.organization_id == org_id)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found in this organization")
    return user


async def claim_version(
    org: Organization, session: AsyncSession, expected_version: Optional[int] = None
) -> None:
    """Compare-and-set the organization's version; lose the race -> 409."""
    if expected_version is not None and expected_version != org.version:
        raise ConflictError(
            "Organization was modified since it was read",
            details={"current_version": org.version},
        )
    read_version = org.version
    result = await session.execute(
        update(Organization)
        .where(Organization.id == org.id, Organization.version == read_version)
        .values(version=read_version + 1, updated_at=utcnow())
    )
    if result.rowcount != 1:
        raise ConflictError("Organization was modified concurrently; reload and retry")
    # Bulk UPDATE does not always refresh loaded instances
    org.version = read_version + 1


async def commit(operation: str, session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        log.warning("lifecycle.conflict", operation=operation, error=str(exc.orig))
        raise ConflictError(f"{operation} conflicts with existing data; no changes were applied")
    except SQLAlchemyError as exc:
        await session.rollback()
        log.error("lifecycle.commit_failed", operation=operation, error=str(exc))
        raise InternalError(f"{operation} did not complete; no changes were applied")


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

async def create_organization(
    req: OrgCreateRequest, caller_id: str, session: AsyncSession
) -> Organization:
    """Create an organization with the caller as its sole admin, in one transaction."""
    user = await load_caller(caller_id, session)
    caller = as_caller(user)
    authorize(caller, Action.CREATE_ORGANIZATION)

    # Joining the new organization means leaving the current one.
    if user.organization_id:
        previous = await session.get(Organization, user.organization_id)
        if previous:
            members = await list_members(previous.id, session)
            enforce(check_admin_retention(members, user.id, None), Action.CREATE_ORGANIZATION, caller)
            await claim_version(previous, session)

    org = Organization(
        name=req.name,
        description=req.description,
        industry=req.industry,
        nationality=req.nationality,
        software_inventory=list(req.software_inventory),
    )
    session.add(org)
    user.organization_id = org.id
    user.role = Role.ADMIN.value
    session.add(user)
    await commit("Organization creation", session)

    log.info("org.created", org_id=org.id, creator=user.id)
    return org


async def add_member(
    org_id: str, email: str, role: Role, caller_id: str, session: AsyncSession
) -> User:
    """Attach an unassigned user to the organization."""
    caller = as_caller(await load_caller(caller_id, session))
    org = await load_org(org_id, session)
    authorize(caller, Action.ADD_MEMBER, Resource(organization_id=org.id))

    if role not in ASSIGNABLE_ROLES:
        raise ValidationFailed("role must be one of: admin, editor, viewer")

    result = await session.execute(select(User).where(User.email == email))
    target = result.scalar_one_or_none()
    if not target:
        raise NotFoundError("No registered user with that email")
    if target.organization_id:
        raise ConflictError("User already belongs to an organization")

    await claim_version(org, session)
    target.organization_id = org.id
    target.role = role.value
    session.add(target)
    await commit("Adding member", session)

    log.info("member.added", org_id=org.id, user_id=target.id, role=role.value)
    return target


async def change_member_role(
    org_id: str,
    target_user_id: str,
    new_role: Role,
    caller_id: str,
    session: AsyncSession,
    expected_version: Optional[int] = None,
) -> User:
    """Change a member's role without ever leaving the organization adminless."""
    caller = as_caller(await load_caller(caller_id, session))
    org = await load_org(org_id, session)

    action = Action.CHANGE_OWN_ROLE if target_user_id == caller.user_id else Action.ASSIGN_ROLE
    authorize(caller, action, Resource(organization_id=org.id, owner_user_id=target_user_id))

    if new_role not in ASSIGNABLE_ROLES:
        raise ValidationFailed("role must be one of: admin, editor, viewer")

    target = await load_member(org.id, target_user_id, session)
    members = await list_members(org.id, session)
    enforce(check_admin_retention(members, target.id, new_role), action, caller)

    await claim_version(org, session, expected_version)
    previous_role = target.role
    target.role = new_role.value
    session.add(target)
    await commit("Role change", session)

    log.info(
        "member.role_changed",
        org_id=org.id,
        user_id=target.id,
        old_role=previous_role,
        new_role=new_role.value,
        by=caller.user_id,
    )
    return target


async def remove_member(
    org_id: str,
    target_user_id: str,
    caller_id: str,
    session: AsyncSession,
    expected_version: Optional[int] = None,
) -> User:
    """Remove a member (admin) or leave the organization (self)."""
    caller = as_caller(await load_caller(caller_id, session))
    org = await load_org(org_id, session)
    authorize(
        caller,
        Action.REMOVE_MEMBER,
        Resource(organization_id=org.id, owner_user_id=target_user_id),
    )

    target = await load_member(org.id, target_user_id, session)
    members = await list_members(org.id, session)
    enforce(check_admin_retention(members, target.id, None), Action.REMOVE_MEMBER, caller)

    await claim_version(org, session, expected_version)
    target.organization_id = ""
    target.role = Role.UNASSIGNED.value
    session.add(target)
    await commit("Member removal", session)

    log.info("member.removed", org_id=org.id, user_id=target.id, by=caller.user_id)
    return target


async def delete_user(target_user_id: str, caller_id: str, session: AsyncSession) -> None:
    """Delete a user account: the user themself, or an admin of their organization."""
    caller = as_caller(await load_caller(caller_id, session))
    target = await session.get(User, target_user_id)
    if not target:
        raise NotFoundError("User not found")

    is_self = target.id == caller.user_id
    action = Action.DELETE_OWN_ACCOUNT if is_self else Action.DELETE_USER
    authorize(
        caller,
        action,
        Resource(organization_id=target.organization_id, owner_user_id=target.id),
    )

    if target.organization_id:
        org = await session.get(Organization, target.organization_id)
        if org:
            members = await list_members(org.id, session)
            enforce(check_admin_retention(members, target.id, None), action, caller)
            await claim_version(org, session)

    await session.delete(target)
    await commit("Account deletion", session)
    log.info("user.deleted", user_id=target_user_id, by=caller.user_id)


async def delete_organization(
    org_id: str,
    caller_id: str,
    session: AsyncSession,
    expected_version: Optional[int] = None,
) -> None:
    """Delete an organization and everything that depends on it, atomically.

    One batch: members reset to unassigned, incidents and threat actors
    deleted, organization deleted. Either all of it is committed or none.
    Failed batches are reported, never retried here.
    """
    caller = as_caller(await load_caller(caller_id, session))
    org = await load_org(org_id, session)
    authorize(caller, Action.DELETE_ORGANIZATION, Resource(organization_id=org.id))

    if expected_version is not None and expected_version != org.version:
        raise ConflictError(
            "Organization was modified since it was read",
            details={"current_version": org.version},
        )

    now = utcnow()
    read_version = org.version
    try:
        members = await session.execute(
            update(User)
            .where(User.organization_id == org.id)
            .values(organization_id="", role=Role.UNASSIGNED.value, updated_at=now)
        )
        incidents = await session.execute(delete(Incident).where(Incident.organization_id == org.id))
        actors = await session.execute(delete(ThreatActor).where(ThreatActor.organization_id == org.id))
        removed = await session.execute(
            delete(Organization).where(
                Organization.id == org.id, Organization.version == read_version
            )
        )
        if removed.rowcount != 1:
            await session.rollback()
            raise ConflictError("Organization was modified concurrently; reload and retry")
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        log.error("org.delete_failed", org_id=org_id, error=str(exc))
        raise InternalError("Organization deletion did not complete; no changes were applied")

    log.info(
        "org.deleted",
        org_id=org_id,
        by=caller.user_id,
        members_reset=members.rowcount,
        incidents_deleted=incidents.rowcount,
        threat_actors_deleted=actors.rowcount,
    )
