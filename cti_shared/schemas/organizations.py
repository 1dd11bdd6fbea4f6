"""
Organization-related Pydantic schemas shared between server and clients.

Covers: org create/update requests, membership requests, org responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field

from .common import ASSIGNABLE_ROLES, OrgStatus, Role


def _assignable(role: Role) -> Role:
    if role not in ASSIGNABLE_ROLES:
        raise ValueError("role must be one of: admin, editor, viewer")
    return role


AssignableRole = Annotated[Role, AfterValidator(_assignable)]


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    description: Optional[str] = Field(None, max_length=1000)
    industry: Optional[str] = Field(None, max_length=100)
    nationality: Optional[str] = Field(None, max_length=100)
    software_inventory: list[str] = Field(default_factory=list)


class OrgUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    industry: Optional[str] = Field(None, max_length=100)
    nationality: Optional[str] = Field(None, max_length=100)
    software_inventory: Optional[list[str]] = None
    status: Optional[OrgStatus] = None
    expected_version: Optional[int] = Field(
        None,
        ge=1,
        description="Version the caller last read; stale writes are rejected",
    )


class MemberAddRequest(BaseModel):
    """Attach an existing, unassigned user to the organization."""
    email: EmailStr
    role: AssignableRole = Role.VIEWER


class MemberRoleUpdateRequest(BaseModel):
    role: AssignableRole
    expected_version: Optional[int] = Field(None, ge=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    industry: Optional[str] = None
    nationality: Optional[str] = None
    software_inventory: list[str] = Field(default_factory=list)
    status: OrgStatus
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
