"""
identity.py — Identity Resolver

Purpose:
- Turn a session token into the *live* User row, on every request.

Revocation:
- Tokens are stateless and there is no blacklist. The row is read on every
  request, so deleting a user or changing their role takes effect on the
  next request.

Failure modes:
- TokenInvalid  → bad signature / malformed / claims no longer match the row
- TokenExpired  → past `exp`
- UserNotFound  → token fine, user deleted
"""

from sqlalchemy.orm import Session

from portal.core.errors import TokenInvalid, UserNotFound
from portal.core.logging import get_logger
from portal.core.security import decode_token
from portal.models.user import User

logger = get_logger(__name__)


class IdentityResolver:
    def __init__(self, db: Session, secret_key: str, algorithm: str = "HS256"):
        self._db = db
        self._secret_key = secret_key
        self._algorithm = algorithm

    def resolve(self, token: str) -> User:
        if not token:
            raise TokenInvalid("No token, authorization denied")

        payload = decode_token(token, self._secret_key, self._algorithm)

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError) as e:
            raise TokenInvalid() from e

        user = self._db.get(User, user_id)
        if user is None:
            logger.info("Rejected token for deleted user %s", user_id)
            raise UserNotFound()

        if user.role != payload["role"]:
            # Role changed since the token was issued; force a fresh login
            logger.info("Rejected token for user %s after role change", user_id)
            raise TokenInvalid("Session is no longer valid, please log in again")

        return user
