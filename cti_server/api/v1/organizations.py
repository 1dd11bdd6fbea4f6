"""
Organization API endpoints.

POST   /api/v1/organizations                                 — Create an org (caller becomes admin)
GET    /api/v1/organizations/{org_id}                        — Get org details
PATCH  /api/v1/organizations/{org_id}                        — Update org metadata (Admin)
DELETE /api/v1/organizations/{org_id}                        — Delete org and its data (Admin)
POST   /api/v1/organizations/{org_id}/members                — Add an unassigned user (Admin)
PUT    /api/v1/organizations/{org_id}/members/{user_id}/role — Change a member's role
DELETE /api/v1/organizations/{org_id}/members/{user_id}      — Remove a member / leave
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cti_server.core.auth import AuthenticatedContext, get_caller
from cti_server.core.database import get_session
from cti_server.core.ratelimit import rate_limit
from cti_server.services import lifecycle
from cti_server.services import organizations as org_service
from cti_shared.schemas.common import StatusResponse
from cti_shared.schemas.organizations import (
    MemberAddRequest,
    MemberRoleUpdateRequest,
    OrgCreateRequest,
    OrgResponse,
    OrgUpdateRequest,
)
from cti_shared.schemas.users import UserResponse

router = APIRouter()


@router.post(
    "",
    response_model=OrgResponse,
    status_code=201,
    dependencies=[Depends(rate_limit("create_organization"))],
)
async def create_org(
    body: OrgCreateRequest,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization. The creator becomes its admin."""
    return await lifecycle.create_organization(body, auth.user_id, session)


@router.get("/{org_id}", response_model=OrgResponse)
async def get_org(
    org_id: str,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.get_org(org_id, auth, session)


@router.patch("/{org_id}", response_model=OrgResponse)
async def update_org(
    org_id: str,
    body: OrgUpdateRequest,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.update_org(org_id, body, auth, session)


@router.delete("/{org_id}", response_model=StatusResponse)
async def delete_org(
    org_id: str,
    expected_version: Optional[int] = Query(None, ge=1),
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    """Delete the organization. Members are unassigned; incidents and threat actors are removed."""
    await lifecycle.delete_organization(org_id, auth.user_id, session, expected_version)
    return StatusResponse(message="Organization deleted")


@router.post("/{org_id}/members", response_model=UserResponse, status_code=201)
async def add_member(
    org_id: str,
    body: MemberAddRequest,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await lifecycle.add_member(org_id, body.email.lower(), body.role, auth.user_id, session)


@router.put("/{org_id}/members/{user_id}/role", response_model=UserResponse)
async def change_member_role(
    org_id: str,
    user_id: str,
    body: MemberRoleUpdateRequest,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await lifecycle.change_member_role(
        org_id, user_id, body.role, auth.user_id, session, body.expected_version
    )


@router.delete("/{org_id}/members/{user_id}", response_model=StatusResponse)
async def remove_member(
    org_id: str,
    user_id: str,
    expected_version: Optional[int] = Query(None, ge=1),
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    await lifecycle.remove_member(org_id, user_id, auth.user_id, session, expected_version)
    return StatusResponse(message="Member removed")
