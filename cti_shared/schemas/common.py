from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class Role(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"
    UNASSIGNED = "unassigned"


# Roles that may be granted through membership changes; "unassigned" is only
# ever the result of leaving or losing an organization.
ASSIGNABLE_ROLES: frozenset["Role"] = frozenset({Role.ADMIN, Role.EDITOR, Role.VIEWER})


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class OrgStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class DenyReason(str, Enum):
    INSUFFICIENT_ROLE = "InsufficientRole"
    WRONG_ORGANIZATION = "WrongOrganization"
    CANNOT_ACT_ON_SELF = "CannotActOnSelf"
    ADMIN_REQUIREMENT_VIOLATED = "AdminRequirementViolated"


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx response."""
    error: str
    message: str
    details: Optional[Any] = None


class StatusResponse(BaseModel):
    message: str
