"""
auth.py — Authentication Endpoints (API Layer)

Purpose:
- POST /auth/login     → public; issues a 24h session token
- POST /auth/register  → admin-only; creates a doctor / nurse / assistant
- GET  /auth/me        → any authenticated user

This file stays thin: hashing, token encoding and lookups live in
services/credentials.py and services/identity.py.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_settings, require_action
from portal.core.config import Settings
from portal.core.database import get_db
from portal.models.user import User
from portal.services.credentials import CredentialVerifier
from portal.services.policy import Action

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

# -----------------------------------------------------------------------------
# Request Schemas
# -----------------------------------------------------------------------------

class LoginRequest(BaseModel):
    """
    - `loginName`: the user's login name (`username` accepted too).
    - `password`: raw password supplied by the user.
    """
    loginName: str = Field(validation_alias=AliasChoices("loginName", "username"))
    password: str


class RegisterRequest(BaseModel):
    name: str
    loginName: str = Field(validation_alias=AliasChoices("loginName", "username"))
    password: str
    role: Optional[str] = None


def _verifier(db: Session, settings: Settings) -> CredentialVerifier:
    return CredentialVerifier(
        db,
        secret_key=settings.JWT_SECRET_KEY,
        expire_minutes=settings.JWT_EXPIRE_MINUTES,
        algorithm=settings.JWT_ALGORITHM,
    )


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.post("/login")
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    POST /auth/login

    Wrong password and unknown login name both yield
    401 {"success": false, "message": "Invalid credentials"}.
    """
    session = _verifier(db, settings).authenticate(payload.loginName, payload.password)
    return {
        "success": True,
        "token": session.token,
        "user": session.user.to_dict(),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _admin: User = Depends(require_action(Action.MANAGE_USERS)),
):
    user = _verifier(db, settings).register(
        name=payload.name,
        login_name=payload.loginName,
        password=payload.password,
        role=payload.role,
    )
    return {"success": True, "user": user.to_dict()}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {
        "success": True,
        "user": {
            "userId": user.id,
            "name": user.name,
            "loginName": user.username,
            "role": user.role,
        },
    }
