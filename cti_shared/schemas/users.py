"""User schemas: registration, profile and member management."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, EmailStr, Field

from .common import Role, UserStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    """Self-registration. The identity itself comes from the bearer credential."""
    email: Optional[EmailStr] = None  # falls back to the verified "email" claim
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    profile_picture_url: Optional[str] = Field(default=None, max_length=2048)


class ProfileUpdateRequest(BaseModel):
    """Fields a user may change on their own profile."""
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    profile_picture_url: Optional[str] = Field(default=None, max_length=2048)


class UserStatusUpdateRequest(BaseModel):
    status: UserStatus


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    """Single user response."""
    id: str
    email: str
    first_name: str
    last_name: str
    profile_picture_url: Optional[str] = None
    role: Role
    organization_id: str
    status: UserStatus
    created_at: datetime
    last_login_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    """Members of the caller's organization."""
    data: List[UserResponse]
