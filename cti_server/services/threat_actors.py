"""
Threat actor service — organization-scoped CRUD.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from cti_server.core.auth import AuthenticatedContext, authorize
from cti_server.core.errors import NotFoundError
from cti_server.core.policy import Action, Resource
from cti_server.models.threat_actor import ThreatActor
from cti_shared.schemas.threat_actors import ThreatActorCreate, ThreatActorUpdate

log = structlog.get_logger()


async def _load(actor_id: str, session: AsyncSession) -> ThreatActor:
    actor = await session.get(ThreatActor, actor_id)
    if not actor:
        raise NotFoundError("Threat actor not found")
    return actor


async def list_threat_actors(
    auth: AuthenticatedContext, session: AsyncSession
) -> list[ThreatActor]:
    authorize(auth, Action.VIEW_THREAT_ACTOR, auth.own_org)
    result = await session.execute(
        select(ThreatActor)
        .where(ThreatActor.organization_id == auth.organization_id)
        .order_by(ThreatActor.name)
    )
    return list(result.scalars().all())


async def get_threat_actor(
    actor_id: str, auth: AuthenticatedContext, session: AsyncSession
) -> ThreatActor:
    actor = await _load(actor_id, session)
    if actor.organization_id != auth.organization_id:
        raise NotFoundError("Threat actor not found")
    authorize(auth, Action.VIEW_THREAT_ACTOR, Resource(organization_id=actor.organization_id))
    return actor


async def create_threat_actor(
    req: ThreatActorCreate, auth: AuthenticatedContext, session: AsyncSession
) -> ThreatActor:
    authorize(auth, Action.CREATE_THREAT_ACTOR, auth.own_org)
    actor = ThreatActor(**req.model_dump(mode="json"), organization_id=auth.organization_id)
    session.add(actor)
    await session.flush()

    log.info("threat_actor.created", actor_id=actor.id, org_id=actor.organization_id)
    return actor


async def update_threat_actor(
    actor_id: str,
    req: ThreatActorUpdate,
    auth: AuthenticatedContext,
    session: AsyncSession,
) -> ThreatActor:
    actor = await _load(actor_id, session)
    authorize(auth, Action.UPDATE_THREAT_ACTOR, Resource(organization_id=actor.organization_id))

    changes = req.model_dump(mode="json", exclude_unset=True)
    for field, value in changes.items():
        # Only the free-text fields are nullable
        if value is None and field not in ("description", "country", "motivation"):
            continue
        setattr(actor, field, value)

    session.add(actor)
    await session.flush()

    log.info("threat_actor.updated", actor_id=actor.id, fields=sorted(changes))
    return actor


async def delete_threat_actor(
    actor_id: str, auth: AuthenticatedContext, session: AsyncSession
) -> None:
    actor = await _load(actor_id, session)
    authorize(auth, Action.DELETE_THREAT_ACTOR, Resource(organization_id=actor.organization_id))
    await session.delete(actor)
    await session.flush()
    log.info("threat_actor.deleted", actor_id=actor_id, by=auth.user_id)
