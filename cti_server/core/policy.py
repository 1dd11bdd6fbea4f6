"""
Role policy engine.

A pure decision function over (caller, action, resource). No I/O, no state:
every route decision is looked up in ``ACTION_RULES`` and evaluated by
``decide()``. Callers turn a deny into an error at the service boundary.

Evaluation order, first failure wins:
  1. self-forbidden   — the action may never target the caller
  2. self-permitted   — the resource owner may always act on themselves
  3. role set         — caller.role must be in the action's allowed roles
  4. org scope        — caller.organization_id must equal the resource's
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cti_shared.schemas.common import DenyReason, Role

MEMBER_ROLES = frozenset({Role.ADMIN, Role.EDITOR, Role.VIEWER})
WRITER_ROLES = frozenset({Role.ADMIN, Role.EDITOR})
ADMIN_ONLY = frozenset({Role.ADMIN})
ANY_ROLE = frozenset(Role)


class Action(str, Enum):
    # Pre-membership
    REGISTER = "register"
    VIEW_OWN_PROFILE = "view_own_profile"
    UPDATE_OWN_PROFILE = "update_own_profile"
    DELETE_OWN_ACCOUNT = "delete_own_account"
    CREATE_ORGANIZATION = "create_organization"

    # Organization & membership
    VIEW_ORGANIZATION = "view_organization"
    UPDATE_ORGANIZATION = "update_organization"
    DELETE_ORGANIZATION = "delete_organization"
    LIST_MEMBERS = "list_members"
    VIEW_USER = "view_user"
    ADD_MEMBER = "add_member"
    ASSIGN_ROLE = "assign_role"
    CHANGE_OWN_ROLE = "change_own_role"
    REMOVE_MEMBER = "remove_member"
    UPDATE_USER_STATUS = "update_user_status"
    DELETE_USER = "delete_user"

    # Org-scoped data
    VIEW_INCIDENT = "view_incident"
    CREATE_INCIDENT = "create_incident"
    UPDATE_INCIDENT = "update_incident"
    DELETE_INCIDENT = "delete_incident"
    VIEW_THREAT_ACTOR = "view_threat_actor"
    CREATE_THREAT_ACTOR = "create_threat_actor"
    UPDATE_THREAT_ACTOR = "update_threat_actor"
    DELETE_THREAT_ACTOR = "delete_threat_actor"


@dataclass(frozen=True)
class ActionRule:
    roles: frozenset[Role]
    org_scoped: bool = True
    self_permitted: bool = False
    self_forbidden: bool = False


ACTION_RULES: dict[Action, ActionRule] = {
    Action.REGISTER: ActionRule(ANY_ROLE, org_scoped=False),
    Action.VIEW_OWN_PROFILE: ActionRule(ANY_ROLE, org_scoped=False),
    Action.UPDATE_OWN_PROFILE: ActionRule(ANY_ROLE, org_scoped=False),
    Action.DELETE_OWN_ACCOUNT: ActionRule(ANY_ROLE, org_scoped=False),
    Action.CREATE_ORGANIZATION: ActionRule(ANY_ROLE, org_scoped=False),

    Action.VIEW_ORGANIZATION: ActionRule(MEMBER_ROLES),
    Action.UPDATE_ORGANIZATION: ActionRule(ADMIN_ONLY),
    Action.DELETE_ORGANIZATION: ActionRule(ADMIN_ONLY),
    Action.LIST_MEMBERS: ActionRule(MEMBER_ROLES),
    Action.VIEW_USER: ActionRule(MEMBER_ROLES, self_permitted=True),
    Action.ADD_MEMBER: ActionRule(ADMIN_ONLY),
    Action.ASSIGN_ROLE: ActionRule(ADMIN_ONLY, self_forbidden=True),
    Action.CHANGE_OWN_ROLE: ActionRule(ADMIN_ONLY),
    Action.REMOVE_MEMBER: ActionRule(ADMIN_ONLY, self_permitted=True),
    Action.UPDATE_USER_STATUS: ActionRule(ADMIN_ONLY, self_forbidden=True),
    Action.DELETE_USER: ActionRule(ADMIN_ONLY, self_permitted=True),

    Action.VIEW_INCIDENT: ActionRule(MEMBER_ROLES),
    Action.CREATE_INCIDENT: ActionRule(WRITER_ROLES),
    Action.UPDATE_INCIDENT: ActionRule(WRITER_ROLES),
    Action.DELETE_INCIDENT: ActionRule(WRITER_ROLES),
    Action.VIEW_THREAT_ACTOR: ActionRule(MEMBER_ROLES),
    Action.CREATE_THREAT_ACTOR: ActionRule(WRITER_ROLES),
    Action.UPDATE_THREAT_ACTOR: ActionRule(WRITER_ROLES),
    Action.DELETE_THREAT_ACTOR: ActionRule(WRITER_ROLES),
}


@dataclass(frozen=True)
class Caller:
    """The verified identity making a request."""
    user_id: str
    role: Role
    organization_id: str = ""


@dataclass(frozen=True)
class Resource:
    """What an action targets.

    ``owner_user_id`` is set only when the resource is a user (or belongs to
    one) and self-scope rules apply.
    """
    organization_id: Optional[str] = None
    owner_user_id: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def deny(reason: DenyReason, message: str) -> Decision:
    return Decision(False, reason, message)


def decide(caller: Caller, action: Action, resource: Optional[Resource] = None) -> Decision:
    """Decide whether ``caller`` may perform ``action`` on ``resource``."""
    rule = ACTION_RULES[action]
    role = Role(caller.role)
    is_self = (
        resource is not None
        and resource.owner_user_id is not None
        and resource.owner_user_id == caller.user_id
    )

    if rule.self_forbidden and is_self:
        return deny(
            DenyReason.CANNOT_ACT_ON_SELF,
            f"'{action.value}' cannot be performed on your own account",
        )

    if rule.self_permitted and is_self:
        return ALLOW

    if role not in rule.roles:
        allowed = ", ".join(sorted(r.value for r in rule.roles))
        return deny(
            DenyReason.INSUFFICIENT_ROLE,
            f"'{action.value}' requires one of the following roles: {allowed}. "
            f"Your role: {role.value}",
        )

    if rule.org_scoped and resource is not None:
        if not caller.organization_id or caller.organization_id != resource.organization_id:
            return deny(
                DenyReason.WRONG_ORGANIZATION,
                f"'{action.value}' is only permitted on resources of your own organization",
            )

    return ALLOW
