"""
Threat actor API endpoints (scoped to the caller's organization).

GET    /api/v1/threat-actors              — List threat actors
POST   /api/v1/threat-actors              — Create a threat actor (Admin, Editor)
GET    /api/v1/threat-actors/{actor_id}   — Get a threat actor
PATCH  /api/v1/threat-actors/{actor_id}   — Update a threat actor (Admin, Editor)
DELETE /api/v1/threat-actors/{actor_id}   — Delete a threat actor (Admin, Editor)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cti_server.core.auth import AuthenticatedContext, get_caller
from cti_server.core.database import get_session
from cti_server.services import threat_actors as actor_service
from cti_shared.schemas.common import StatusResponse
from cti_shared.schemas.threat_actors import (
    ThreatActorCreate,
    ThreatActorListResponse,
    ThreatActorRead,
    ThreatActorUpdate,
)

router = APIRouter()


@router.get("", response_model=ThreatActorListResponse)
async def list_threat_actors(
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    actors = await actor_service.list_threat_actors(auth, session)
    return ThreatActorListResponse(data=actors)


@router.post("", response_model=ThreatActorRead, status_code=201)
async def create_threat_actor(
    body: ThreatActorCreate,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await actor_service.create_threat_actor(body, auth, session)


@router.get("/{actor_id}", response_model=ThreatActorRead)
async def get_threat_actor(
    actor_id: str,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await actor_service.get_threat_actor(actor_id, auth, session)


@router.patch("/{actor_id}", response_model=ThreatActorRead)
async def update_threat_actor(
    actor_id: str,
    body: ThreatActorUpdate,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await actor_service.update_threat_actor(actor_id, body, auth, session)


@router.delete("/{actor_id}", response_model=StatusResponse)
async def delete_threat_actor(
    actor_id: str,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    await actor_service.delete_threat_actor(actor_id, auth, session)
    return StatusResponse(message="Threat actor deleted")
