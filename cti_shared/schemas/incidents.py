"""Incident schemas. Incidents always belong to the reporter's organization."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, StringConstraints

CveId = Annotated[str, StringConstraints(pattern=r"^CVE-\d{4}-\d{4,}$")]


class IncidentStatus(str, Enum):
    OPEN = "Open"
    TRIAGED = "Triaged"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class IncidentPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class IncidentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=10000)
    status: IncidentStatus = IncidentStatus.OPEN
    priority: IncidentPriority = IncidentPriority.MEDIUM
    type: Optional[str] = Field(default=None, max_length=100)
    cve_ids: List[CveId] = Field(default_factory=list)
    threat_actor_ids: List[str] = Field(default_factory=list)


class IncidentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=10000)
    resolution_notes: Optional[str] = Field(default=None, max_length=10000)
    status: Optional[IncidentStatus] = None
    priority: Optional[IncidentPriority] = None
    type: Optional[str] = Field(default=None, max_length=100)
    cve_ids: Optional[List[CveId]] = None
    threat_actor_ids: Optional[List[str]] = None
    assigned_to_user_id: Optional[str] = None


class IncidentRead(BaseModel):
    id: str
    title: str
    description: str
    resolution_notes: Optional[str] = None
    status: IncidentStatus
    priority: IncidentPriority
    type: Optional[str] = None
    cve_ids: List[str]
    threat_actor_ids: List[str]
    reported_by_user_id: str
    assigned_to_user_id: Optional[str] = None
    organization_id: str
    date_created: datetime
    date_resolved: Optional[datetime] = None
    last_updated_at: datetime

    model_config = {"from_attributes": True}


class IncidentListResponse(BaseModel):
    data: List[IncidentRead]
