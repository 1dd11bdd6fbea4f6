"""
Tests for the Role Policy Engine.

Covers:
- Role sets per action
- Organization scoping
- Self-forbidden / self-permitted rules
- Evaluation order
"""

from __future__ import annotations

import pytest

from cti_server.core.policy import (
    ACTION_RULES,
    ALLOW,
    Action,
    Caller,
    Resource,
    decide,
)
from cti_shared.schemas.common import DenyReason, Role

MUTATING_ACTIONS = [
    Action.CREATE_INCIDENT,
    Action.UPDATE_INCIDENT,
    Action.DELETE_INCIDENT,
    Action.CREATE_THREAT_ACTOR,
    Action.UPDATE_THREAT_ACTOR,
    Action.DELETE_THREAT_ACTOR,
    Action.UPDATE_ORGANIZATION,
    Action.DELETE_ORGANIZATION,
    Action.ASSIGN_ROLE,
    Action.ADD_MEMBER,
]

ORG_SCOPED_ACTIONS = [action for action, rule in ACTION_RULES.items() if rule.org_scoped]


def _caller(role: Role, org: str = "org-1", user_id: str = "user-1") -> Caller:
    return Caller(user_id=user_id, role=role, organization_id=org)


class TestRoleSets:
    @pytest.mark.parametrize("action", MUTATING_ACTIONS)
    def test_viewer_cannot_mutate(self, action):
        decision = decide(
            _caller(Role.VIEWER),
            action,
            Resource(organization_id="org-1", owner_user_id="someone-else"),
        )
        assert not decision.allowed
        assert decision.reason == DenyReason.INSUFFICIENT_ROLE

    def test_viewer_can_read_incidents(self):
        assert decide(_caller(Role.VIEWER), Action.VIEW_INCIDENT, Resource("org-1")).allowed

    def test_editor_can_write_incidents(self):
        for action in (Action.CREATE_INCIDENT, Action.UPDATE_INCIDENT, Action.DELETE_INCIDENT):
            assert decide(_caller(Role.EDITOR), action, Resource("org-1")).allowed

    def test_editor_cannot_manage_members(self):
        decision = decide(_caller(Role.EDITOR), Action.ADD_MEMBER, Resource("org-1"))
        assert decision.reason == DenyReason.INSUFFICIENT_ROLE

    def test_unassigned_cannot_read_org_data(self):
        decision = decide(_caller(Role.UNASSIGNED, org=""), Action.VIEW_INCIDENT, Resource(""))
        assert decision.reason == DenyReason.INSUFFICIENT_ROLE

    def test_unassigned_can_create_organization(self):
        assert decide(_caller(Role.UNASSIGNED, org=""), Action.CREATE_ORGANIZATION) == ALLOW

    def test_message_names_required_roles(self):
        decision = decide(_caller(Role.VIEWER), Action.DELETE_ORGANIZATION, Resource("org-1"))
        assert "admin" in decision.message
        assert "viewer" in decision.message

    def test_every_action_has_a_rule(self):
        assert set(ACTION_RULES) == set(Action)


class TestOrganizationScope:
    @pytest.mark.parametrize("role", [Role.ADMIN, Role.EDITOR, Role.VIEWER])
    @pytest.mark.parametrize("action", ORG_SCOPED_ACTIONS)
    def test_other_tenant_always_denied(self, role, action):
        decision = decide(_caller(role), action, Resource(organization_id="org-2"))
        assert not decision.allowed

    def test_editor_updating_foreign_incident(self):
        """Editor in org-1 updating an org-2 incident is a tenancy violation."""
        decision = decide(_caller(Role.EDITOR), Action.UPDATE_INCIDENT, Resource("org-2"))
        assert decision.reason == DenyReason.WRONG_ORGANIZATION

    def test_empty_caller_org_never_matches(self):
        decision = decide(_caller(Role.ADMIN, org=""), Action.VIEW_INCIDENT, Resource(""))
        assert decision.reason == DenyReason.WRONG_ORGANIZATION

    def test_role_checked_before_scope(self):
        decision = decide(_caller(Role.VIEWER), Action.DELETE_INCIDENT, Resource("org-2"))
        assert decision.reason == DenyReason.INSUFFICIENT_ROLE


class TestSelfRules:
    def test_admin_cannot_assign_own_role(self):
        decision = decide(
            _caller(Role.ADMIN),
            Action.ASSIGN_ROLE,
            Resource(organization_id="org-1", owner_user_id="user-1"),
        )
        assert decision.reason == DenyReason.CANNOT_ACT_ON_SELF

    def test_admin_cannot_deactivate_self(self):
        decision = decide(
            _caller(Role.ADMIN),
            Action.UPDATE_USER_STATUS,
            Resource(organization_id="org-1", owner_user_id="user-1"),
        )
        assert decision.reason == DenyReason.CANNOT_ACT_ON_SELF

    def test_self_forbidden_wins_over_role(self):
        decision = decide(
            _caller(Role.VIEWER),
            Action.ASSIGN_ROLE,
            Resource(organization_id="org-1", owner_user_id="user-1"),
        )
        assert decision.reason == DenyReason.CANNOT_ACT_ON_SELF

    def test_admin_may_change_own_role_through_dedicated_action(self):
        decision = decide(
            _caller(Role.ADMIN),
            Action.CHANGE_OWN_ROLE,
            Resource(organization_id="org-1", owner_user_id="user-1"),
        )
        assert decision.allowed

    def test_member_may_leave(self):
        decision = decide(
            _caller(Role.VIEWER),
            Action.REMOVE_MEMBER,
            Resource(organization_id="org-1", owner_user_id="user-1"),
        )
        assert decision.allowed

    def test_member_may_view_self(self):
        decision = decide(
            _caller(Role.VIEWER),
            Action.VIEW_USER,
            Resource(organization_id="org-1", owner_user_id="user-1"),
        )
        assert decision.allowed

    def test_viewer_cannot_remove_others(self):
        decision = decide(
            _caller(Role.VIEWER),
            Action.REMOVE_MEMBER,
            Resource(organization_id="org-1", owner_user_id="user-2"),
        )
        assert decision.reason == DenyReason.INSUFFICIENT_ROLE


class TestDecision:
    def test_truthiness(self):
        assert ALLOW
        assert not decide(_caller(Role.VIEWER), Action.ADD_MEMBER, Resource("org-1"))
