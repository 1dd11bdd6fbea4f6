"""
Incident service — organization-scoped CRUD.

Every query filters on the caller's organization; an incident from another
tenant is indistinguishable from a missing one on reads.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from cti_server.core.auth import AuthenticatedContext, authorize
from cti_server.core.errors import NotFoundError, ValidationFailed
from cti_server.core.policy import Action, Resource
from cti_server.models.base import utcnow
from cti_server.models.incident import Incident
from cti_server.models.user import User
from cti_shared.schemas.incidents import IncidentCreate, IncidentStatus, IncidentUpdate

log = structlog.get_logger()

RESOLVED_STATUSES = frozenset({IncidentStatus.RESOLVED.value, IncidentStatus.CLOSED.value})


async def _load(incident_id: str, session: AsyncSession) -> Incident:
    incident = await session.get(Incident, incident_id)
    if not incident:
        raise NotFoundError("Incident not found")
    return incident


async def list_incidents(
    auth: AuthenticatedContext, session: AsyncSession
) -> list[Incident]:
    authorize(auth, Action.VIEW_INCIDENT, auth.own_org)
    result = await session.execute(
        select(Incident)
        .where(Incident.organization_id == auth.organization_id)
        .order_by(Incident.date_created.desc())
    )
    return list(result.scalars().all())


async def get_incident(
    incident_id: str, auth: AuthenticatedContext, session: AsyncSession
) -> Incident:
    incident = await _load(incident_id, session)
    if incident.organization_id != auth.organization_id:
        raise NotFoundError("Incident not found")
    authorize(auth, Action.VIEW_INCIDENT, Resource(organization_id=incident.organization_id))
    return incident


async def create_incident(
    req: IncidentCreate, auth: AuthenticatedContext, session: AsyncSession
) -> Incident:
    authorize(auth, Action.CREATE_INCIDENT, auth.own_org)
    incident = Incident(
        **req.model_dump(mode="json"),
        reported_by_user_id=auth.user_id,
        organization_id=auth.organization_id,
    )
    if incident.status in RESOLVED_STATUSES:
        incident.date_resolved = utcnow()
    session.add(incident)
    await session.flush()

    log.info("incident.created", incident_id=incident.id, org_id=incident.organization_id)
    return incident


async def update_incident(
    incident_id: str,
    req: IncidentUpdate,
    auth: AuthenticatedContext,
    session: AsyncSession,
) -> Incident:
    incident = await _load(incident_id, session)
    authorize(auth, Action.UPDATE_INCIDENT, Resource(organization_id=incident.organization_id))

    changes = req.model_dump(mode="json", exclude_unset=True)
    assignee = changes.get("assigned_to_user_id")
    if assignee:
        member = await session.get(User, assignee)
        if not member or member.organization_id != incident.organization_id:
            raise ValidationFailed("Incidents can only be assigned to members of the organization")

    for field, value in changes.items():
        if value is None and field in ("title", "description", "status", "priority", "cve_ids", "threat_actor_ids"):
            continue
        setattr(incident, field, value)

    if incident.status in RESOLVED_STATUSES:
        incident.date_resolved = incident.date_resolved or utcnow()
    else:
        incident.date_resolved = None
    incident.last_updated_at = utcnow()

    session.add(incident)
    await session.flush()

    log.info("incident.updated", incident_id=incident.id, fields=sorted(changes))
    return incident


async def delete_incident(
    incident_id: str, auth: AuthenticatedContext, session: AsyncSession
) -> None:
    incident = await _load(incident_id, session)
    authorize(auth, Action.DELETE_INCIDENT, Resource(organization_id=incident.organization_id))
    await session.delete(incident)
    await session.flush()
    log.info("incident.deleted", incident_id=incident_id, by=auth.user_id)
