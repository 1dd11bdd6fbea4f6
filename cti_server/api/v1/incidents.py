"""
Incident API endpoints (scoped to the caller's organization).

GET    /api/v1/incidents                 — List incidents
POST   /api/v1/incidents                 — Report an incident (Admin, Editor)
GET    /api/v1/incidents/{incident_id}   — Get an incident
PATCH  /api/v1/incidents/{incident_id}   — Update an incident (Admin, Editor)
DELETE /api/v1/incidents/{incident_id}   — Delete an incident (Admin, Editor)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cti_server.core.auth import AuthenticatedContext, get_caller
from cti_server.core.database import get_session
from cti_server.services import incidents as incident_service
from cti_shared.schemas.common import StatusResponse
from cti_shared.schemas.incidents import (
    IncidentCreate,
    IncidentListResponse,
    IncidentRead,
    IncidentUpdate,
)

router = APIRouter()


@router.get("", response_model=IncidentListResponse)
async def list_incidents(
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    incidents = await incident_service.list_incidents(auth, session)
    return IncidentListResponse(data=incidents)


@router.post("", response_model=IncidentRead, status_code=201)
async def create_incident(
    body: IncidentCreate,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await incident_service.create_incident(body, auth, session)


@router.get("/{incident_id}", response_model=IncidentRead)
async def get_incident(
    incident_id: str,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await incident_service.get_incident(incident_id, auth, session)


@router.patch("/{incident_id}", response_model=IncidentRead)
async def update_incident(
    incident_id: str,
    body: IncidentUpdate,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await incident_service.update_incident(incident_id, body, auth, session)


@router.delete("/{incident_id}", response_model=StatusResponse)
async def delete_incident(
    incident_id: str,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    await incident_service.delete_incident(incident_id, auth, session)
    return StatusResponse(message="Incident deleted")
