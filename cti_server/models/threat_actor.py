"""Threat actor model (org-scoped)."""

from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import IdMixin, TimestampMixin


class ThreatActor(IdMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "threat_actors"

    name: str = Field(nullable=False, index=True)
    description: Optional[str] = None
    aliases: list[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    country: Optional[str] = None
    motivation: Optional[str] = None
    sophistication: str = Field(default="Unknown", nullable=False)
    resource_level: str = Field(default="Unknown", nullable=False)
    primary_targets: list[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    attack_patterns: list[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    tools: list[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    malware_families: list[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    is_active: bool = Field(default=True, nullable=False)
    organization_id: str = Field(nullable=False, index=True)
