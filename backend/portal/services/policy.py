"""
policy.py — Role Policy Engine

Purpose:
- Single table answering "may role R perform action A?".
- Every role check in the backend goes through `authorize()`; routers never
  compare role strings themselves.

Rules:
- Closed table, no runtime extension.
- Deny is the default for any (role, action) pair not listed.
- Pure: never touches the database or the object store. Whether a user holds
  an assignment for a given container is a separate question answered by
  services/assignments.py and composed in services/access_gate.py.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional


class Role(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    ASSISTANT = "assistant"


class Action(str, Enum):
    MANAGE_USERS = "manage-users"
    MANAGE_ASSIGNMENTS = "manage-assignments"
    VIEW_AUDIT = "view-audit"
    UPLOAD_FILE = "upload-file"
    DELETE_FILE = "delete-file"
    LIST_CONTAINER = "list-container"
    READ_FILE = "read-file"
    VIEW_OWN_ASSIGNMENTS = "view-own-assignments"


# Roles that can be created or assigned through the HTTP API. Admins are
# provisioned out of band (see portal/cli.py).
REGISTRABLE_ROLES: FrozenSet[Role] = frozenset({Role.DOCTOR, Role.NURSE, Role.ASSISTANT})

_CLINICAL_ACTIONS = frozenset({
    Action.UPLOAD_FILE,
    Action.LIST_CONTAINER,
    Action.READ_FILE,
    Action.VIEW_OWN_ASSIGNMENTS,
})

POLICY: Dict[Role, FrozenSet[Action]] = {
    Role.ADMIN: frozenset(Action),
    Role.DOCTOR: _CLINICAL_ACTIONS,
    Role.NURSE: _CLINICAL_ACTIONS,
    Role.ASSISTANT: frozenset({
        Action.LIST_CONTAINER,
        Action.READ_FILE,
        Action.VIEW_OWN_ASSIGNMENTS,
    }),
}


def parse_role(value: object) -> Optional[Role]:
    """Return the Role for a stored/claimed role string, or None if unknown."""
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value))
    except ValueError:
        return None


def authorize(role: object, action: Action) -> bool:
    """
    True iff `role` is explicitly granted `action`.

    Unknown roles and unknown actions are denied.
    """
    parsed = parse_role(role)
    if parsed is None:
        return False
    return action in POLICY.get(parsed, frozenset())


def is_admin(role: object) -> bool:
    return parse_role(role) is Role.ADMIN
