"""Incident model (org-scoped)."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import IdMixin, utcnow


class Incident(IdMixin, SQLModel, table=True):
    __tablename__ = "incidents"

    title: str = Field(nullable=False)
    description: str = Field(nullable=False)
    resolution_notes: Optional[str] = None
    status: str = Field(default="Open", nullable=False)
    priority: str = Field(default="Medium", nullable=False)
    type: Optional[str] = None
    cve_ids: list[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    threat_actor_ids: list[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    reported_by_user_id: str = Field(nullable=False)
    assigned_to_user_id: Optional[str] = None
    organization_id: str = Field(nullable=False, index=True)
    date_created: datetime = Field(
        default_factory=utcnow, nullable=False, sa_type=sa.DateTime(timezone=True)
    )
    date_resolved: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    last_updated_at: datetime = Field(
        default_factory=utcnow, nullable=False, sa_type=sa.DateTime(timezone=True)
    )
