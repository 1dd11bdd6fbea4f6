"""
Authentication context and authorization dependencies.

The Request Gate (``core.middleware``) attaches an ``AuthenticatedContext``
to ``request.state.caller``. Handlers read it with ``get_caller`` and must
consult the policy engine before acting, either declaratively through
``require_action(...)`` or by calling ``authorize(...)`` once the target
resource is loaded.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import Depends, Request

from cti_server.core.errors import ForbiddenError, MissingCredential
from cti_server.core.policy import Action, Caller, Decision, Resource, decide
from cti_server.models.user import User
from cti_shared.schemas.common import Role

log = structlog.get_logger()


class AuthenticatedContext:
    """Container for a verified caller as of the start of the request."""

    def __init__(self, user: User, subject: str):
        self.user = user
        self.subject = subject
        self.user_id = user.id
        self.role = Role(user.role)
        self.organization_id = user.organization_id or ""

    @property
    def caller(self) -> Caller:
        return Caller(
            user_id=self.user_id,
            role=self.role,
            organization_id=self.organization_id,
        )

    @property
    def own_org(self) -> Resource:
        """The caller's organization as a resource (collection-level actions)."""
        return Resource(organization_id=self.organization_id)


def get_caller(request: Request) -> AuthenticatedContext:
    """Dependency: the caller the Request Gate resolved for this request."""
    auth: Optional[AuthenticatedContext] = getattr(request.state, "caller", None)
    if auth is None:
        raise MissingCredential()
    return auth


def enforce(decision: Decision, action: Action, caller: Caller) -> None:
    """Raise ``ForbiddenError`` for a deny decision."""
    if decision.allowed:
        return
    log.info(
        "authz.denied",
        action=action.value,
        user_id=caller.user_id,
        reason=decision.reason.value,
    )
    raise ForbiddenError(decision.reason, decision.message)


def authorize(
    caller: Caller | AuthenticatedContext,
    action: Action,
    resource: Optional[Resource] = None,
) -> None:
    """Run the policy engine and raise on deny."""
    if isinstance(caller, AuthenticatedContext):
        caller = caller.caller
    enforce(decide(caller, action, resource), action, caller)


def require_action(action: Action):
    """Dependency factory for actions on the caller's own organization."""

    async def _dependency(
        auth: AuthenticatedContext = Depends(get_caller),
    ) -> AuthenticatedContext:
        authorize(auth, action, auth.own_org)
        return auth

    return _dependency
