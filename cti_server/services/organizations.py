"""
Organization service — reads and profile updates.

Membership and existence changes live in ``services.lifecycle``.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cti_server.core.auth import AuthenticatedContext, authorize
from cti_server.core.errors import NotFoundError
from cti_server.core.policy import Action, Resource
from cti_server.models.organization import Organization
from cti_server.services.lifecycle import claim_version, load_org

from cti_shared.schemas.common import OrgStatus
from cti_shared.schemas.organizations import OrgUpdateRequest

log = structlog.get_logger()

# Columns that cannot be cleared with an explicit null
REQUIRED_FIELDS = frozenset({"name", "software_inventory", "status"})


async def get_org(
    org_id: str, auth: AuthenticatedContext, session: AsyncSession
) -> Organization:
    """Get an organization; other tenants' organizations do not exist for the caller."""
    org = await session.get(Organization, org_id)
    if not org or org.id != auth.organization_id:
        raise NotFoundError("Organization not found")
    authorize(auth, Action.VIEW_ORGANIZATION, Resource(organization_id=org.id))
    return org


async def update_org(
    org_id: str,
    req: OrgUpdateRequest,
    auth: AuthenticatedContext,
    session: AsyncSession,
) -> Organization:
    """Update the organization profile (admin only)."""
    org = await load_org(org_id, session)
    authorize(auth, Action.UPDATE_ORGANIZATION, Resource(organization_id=org.id))
    await claim_version(org, session, req.expected_version)

    changes = req.model_dump(exclude_unset=True, exclude={"expected_version"})
    for field, value in changes.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        if isinstance(value, OrgStatus):
            value = value.value
        setattr(org, field, value)

    session.add(org)
    await session.flush()

    log.info("org.updated", org_id=org.id, fields=sorted(changes), version=org.version)
    return org
