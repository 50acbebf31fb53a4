"""
credentials.py — Credential Verifier

Purpose:
- authenticate(login_name, password) → SessionToken
- register(name, login_name, password, role) → User

Rules:
- "Unknown login name" and "wrong password" fail identically with
  InvalidCredentials; the unknown-name path still runs a bcrypt check so the
  two cases also take comparable time.
- register() is admin-only; the caller (router) enforces that through the
  policy engine before calling in. Here we only validate input.
- Only the salted hash is stored.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.database import atomic
from portal.core.errors import DuplicateLogin, InvalidCredentials, InvalidRole, ValidationError
from portal.core.logging import get_logger
from portal.core.security import burn_password_check, create_access_token, hash_password, verify_password
from portal.models.user import User
from portal.services.policy import REGISTRABLE_ROLES, Role, parse_role

logger = get_logger(__name__)


@dataclass
class SessionToken:
    token: str
    user: User


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


class CredentialVerifier:
    def __init__(self, db: Session, secret_key: str, expire_minutes: int, algorithm: str = "HS256"):
        self._db = db
        self._secret_key = secret_key
        self._expire_minutes = expire_minutes
        self._algorithm = algorithm

    def authenticate(self, login_name: str, password: str) -> SessionToken:
        user = self._db.query(User).filter(User.username == login_name).first()

        if user is None:
            burn_password_check(password or "")
            logger.info("Login failed for unknown login name")
            raise InvalidCredentials()

        if not verify_password(password or "", user.password_hash):
            logger.info("Login failed for user %s", user.id)
            raise InvalidCredentials()

        token = create_access_token(
            {"sub": str(user.id), "role": user.role},
            secret_key=self._secret_key,
            expires_minutes=self._expire_minutes,
            algorithm=self._algorithm,
        )
        logger.info("User %s logged in", user.id)
        return SessionToken(token=token, user=user)

    def register(
        self,
        name: str,
        login_name: str,
        password: str,
        role: str,
        allowed_roles: FrozenSet[Role] = REGISTRABLE_ROLES,
    ) -> User:
        parsed_role = parse_role(role)
        if parsed_role is None or parsed_role not in allowed_roles:
            raise InvalidRole()

        name = _require_text(name, "name")
        login_name = _require_text(login_name, "loginName")
        if not password:
            raise ValidationError("password is required")

        if self._db.query(User).filter(User.username == login_name).first() is not None:
            raise DuplicateLogin()

        user = User(
            name=name,
            username=login_name,
            password_hash=hash_password(password),
            role=parsed_role.value,
        )
        with atomic(self._db):
            self._db.add(user)
            try:
                self._db.flush()
            except IntegrityError as e:
                # Lost a race with a concurrent register of the same login name
                raise DuplicateLogin() from e

        logger.info("Registered user %s with role %s", user.id, user.role)
        return user
