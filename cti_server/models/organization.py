"""Organization model."""

import sqlalchemy as sa
from typing import Optional

from sqlmodel import Field, SQLModel

from .base import IdMixin, TimestampMixin


class Organization(IdMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(nullable=False, index=True)
    description: Optional[str] = None
    industry: Optional[str] = None
    nationality: Optional[str] = None
    software_inventory: list[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    status: str = Field(default="active", nullable=False)
    # Compare-and-set token for membership and deletion writes.
    version: int = Field(default=1, nullable=False)
