"""
access_gate.py — Access Gate

Purpose:
- Answer "may this user perform this action on this container [/folder]?"
  before any storage call is made.

Order matters:
1. Role policy (pure, no I/O). Denied → stop. The assignment table is never
   consulted for a role that may not perform the action at all, so denials
   do not reveal whether a grant exists.
2. Admin → allowed without looking at assignments.
3. Assignment store lookup.

`check_access()` returns a decision; `require_access()` raises ForbiddenError
and is what routers call.
"""

from dataclasses import dataclass
from typing import Optional

from portal.core.errors import ForbiddenError
from portal.core.logging import get_logger
from portal.models.user import User
from portal.services.assignments import AssignmentStore
from portal.services.policy import Action, authorize, is_admin

logger = get_logger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AccessDecision(True)


class AccessGate:
    def __init__(self, assignments: AssignmentStore):
        self._assignments = assignments

    def check_access(
        self,
        user: User,
        action: Action,
        container: str,
        folder: Optional[str] = None,
    ) -> AccessDecision:
        if not authorize(user.role, action):
            return AccessDecision(False, "Access forbidden")

        if is_admin(user.role):
            return ALLOW

        if not self._assignments.has_access(user.id, container, folder):
            return AccessDecision(False, "Access denied")

        return ALLOW

    def require_access(
        self,
        user: User,
        action: Action,
        container: str,
        folder: Optional[str] = None,
    ) -> None:
        decision = self.check_access(user, action, container, folder)
        if not decision:
            logger.info(
                "Denied %s for user %s on %s/%s: %s",
                action.value, user.id, container, folder or "", decision.reason,
            )
            raise ForbiddenError(decision.reason)
