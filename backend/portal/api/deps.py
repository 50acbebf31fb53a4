"""
deps.py — Shared FastAPI Dependencies

Purpose:
- Hand request handlers the process-wide resources kept on `app.state`
  (settings, object store, audit recorder) and a per-request DB session.
- Authenticate every protected request:
      token → IdentityResolver (live user row) → policy check
- Build the per-request service objects (assignment store, access gate,
  capability issuer).

Token transport:
- `Authorization: Bearer <token>` is preferred.
- `x-auth-token: <token>` is accepted for older clients.
"""

from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from portal.core.config import Settings
from portal.core.database import get_db
from portal.core.errors import ForbiddenError
from portal.models.user import User
from portal.services.access_gate import AccessGate
from portal.services.assignments import AssignmentStore
from portal.services.audit import AuditRecorder
from portal.services.capabilities import CapabilityIssuer
from portal.services.identity import IdentityResolver
from portal.services.policy import Action, authorize
from portal.storage.object_store import ObjectStore

bearer_scheme = HTTPBearer(auto_error=False)


# -----------------------------------------------------------------------------
# Process-wide resources
# -----------------------------------------------------------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def get_audit_recorder(request: Request) -> AuditRecorder:
    return request.app.state.audit_recorder


# -----------------------------------------------------------------------------
# Authentication
# -----------------------------------------------------------------------------

def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    x_auth_token: Optional[str] = Header(default=None, alias="x-auth-token"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Resolve the caller to their live user row, or raise an AuthError (401).
    """
    token = credentials.credentials if credentials else x_auth_token
    resolver = IdentityResolver(db, settings.JWT_SECRET_KEY, settings.JWT_ALGORITHM)
    return resolver.resolve(token or "")


def require_action(action: Action):
    """
    Dependency factory: the caller must be authenticated and their role must
    be granted `action` by the policy table.

    Usage:
        @router.get("/users")
        def list_all(user: User = Depends(require_action(Action.MANAGE_USERS))): ...
    """

    def action_checker(user: User = Depends(get_current_user)) -> User:
        if not authorize(user.role, action):
            raise ForbiddenError()
        return user

    return action_checker


# -----------------------------------------------------------------------------
# Per-request services
# -----------------------------------------------------------------------------

def get_assignment_store(
    db: Session = Depends(get_db),
    object_store: ObjectStore = Depends(get_object_store),
) -> AssignmentStore:
    return AssignmentStore(db, object_store)


def get_access_gate(assignments: AssignmentStore = Depends(get_assignment_store)) -> AccessGate:
    return AccessGate(assignments)


def get_capability_issuer(object_store: ObjectStore = Depends(get_object_store)) -> CapabilityIssuer:
    return CapabilityIssuer(object_store)
