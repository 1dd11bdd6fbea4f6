"""Threat actor schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Sophistication(str, Enum):
    UNKNOWN = "Unknown"
    MINIMAL = "Minimal"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"


class ResourceLevel(str, Enum):
    UNKNOWN = "Unknown"
    INDIVIDUAL = "Individual"
    CLUB = "Club"
    CONTEST = "Contest"
    TEAM = "Team"
    ORGANIZATION = "Organization"
    GOVERNMENT = "Government"


class ThreatActorBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10000)
    aliases: List[str] = Field(default_factory=list)
    country: Optional[str] = Field(default=None, max_length=100)
    motivation: Optional[str] = Field(default=None, max_length=200)
    sophistication: Sophistication = Sophistication.UNKNOWN
    resource_level: ResourceLevel = ResourceLevel.UNKNOWN
    primary_targets: List[str] = Field(default_factory=list)
    attack_patterns: List[str] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    malware_families: List[str] = Field(default_factory=list)
    is_active: bool = True


class ThreatActorCreate(ThreatActorBase):
    pass


class ThreatActorUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10000)
    aliases: Optional[List[str]] = None
    country: Optional[str] = Field(default=None, max_length=100)
    motivation: Optional[str] = Field(default=None, max_length=200)
    sophistication: Optional[Sophistication] = None
    resource_level: Optional[ResourceLevel] = None
    primary_targets: Optional[List[str]] = None
    attack_patterns: Optional[List[str]] = None
    tools: Optional[List[str]] = None
    malware_families: Optional[List[str]] = None
    is_active: Optional[bool] = None


class ThreatActorRead(ThreatActorBase):
    id: str
    organization_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ThreatActorListResponse(BaseModel):
    data: List[ThreatActorRead]
