"""
User API endpoints.

POST   /api/v1/users/register       — Provision the caller's user record
GET    /api/v1/users/me             — Own profile
PATCH  /api/v1/users/me             — Update own profile
DELETE /api/v1/users/me             — Delete own account
GET    /api/v1/users                — List members of the caller's organization
GET    /api/v1/users/{user_id}      — Member profile
PATCH  /api/v1/users/{user_id}/status — Activate / deactivate a member (Admin)
DELETE /api/v1/users/{user_id}      — Delete a member account (Admin or self)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cti_server.core.auth import AuthenticatedContext, get_caller, require_action
from cti_server.core.database import get_session
from cti_server.core.policy import Action
from cti_server.core.ratelimit import rate_limit
from cti_server.services import lifecycle
from cti_server.services import users as user_service
from cti_shared.schemas.common import StatusResponse
from cti_shared.schemas.users import (
    ProfileUpdateRequest,
    RegisterRequest,
    UserListResponse,
    UserResponse,
    UserStatusUpdateRequest,
)

router = APIRouter()


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=201,
    dependencies=[Depends(rate_limit("register"))],
)
async def register(
    body: RegisterRequest,
    request: Request,
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session),
):
    """Create the application user for the verified identity in the bearer token."""
    identity = await request.app.state.identity_resolver.resolve(authorization)
    return await user_service.register_user(identity, body, session)


@router.get("/me", response_model=UserResponse)
async def get_me(auth: AuthenticatedContext = Depends(require_action(Action.VIEW_OWN_PROFILE))):
    return auth.user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    body: ProfileUpdateRequest,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.update_profile(body, auth, session)


@router.delete("/me", response_model=StatusResponse)
async def delete_me(
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    """Delete your own account. A sole admin must hand over the organization first."""
    await lifecycle.delete_user(auth.user_id, auth.user_id, session)
    return StatusResponse(message="Account deleted")


@router.get("", response_model=UserListResponse)
async def list_users(
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    users = await user_service.list_org_users(auth, session)
    return UserListResponse(data=users)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.get_user(user_id, auth, session)


@router.patch("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: str,
    body: UserStatusUpdateRequest,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.set_user_status(user_id, body.status, auth, session)


@router.delete("/{user_id}", response_model=StatusResponse)
async def delete_user(
    user_id: str,
    auth: AuthenticatedContext = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    await lifecycle.delete_user(user_id, auth.user_id, session)
    return StatusResponse(message="User deleted")
