"""User model."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import IdMixin, TimestampMixin


class User(IdMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    external_subject_id: str = Field(unique=True, index=True, nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)
    first_name: str = Field(default="", nullable=False)
    last_name: str = Field(default="", nullable=False)
    profile_picture_url: Optional[str] = None
    role: str = Field(default="unassigned", nullable=False)  # admin | editor | viewer | unassigned
    organization_id: str = Field(default="", nullable=False, index=True)  # "" when unassigned
    status: str = Field(default="active", nullable=False)  # active | inactive
    last_login_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
