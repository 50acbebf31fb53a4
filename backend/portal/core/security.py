"""
security.py — Authentication Utilities (Password Hashing & JWT Encoding)

Purpose:
- Hash & verify passwords (never store raw passwords).
- Issue and validate signed session tokens.

Token claims:
    {"sub": "<user id>", "role": "<role>", "iat": ..., "exp": ...}

Key Constraints:
- Stateless tokens; there is no server-side session store or blacklist.
  Revocation works because every request re-reads the user row
  (see services/identity.py), so this module only answers
  "is this token authentic and unexpired?".

This module does NOT:
- Define API routes → portal/api/v1/auth.py
- Query the database.
"""

import datetime
from typing import Any, Dict

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from portal.core.errors import TokenExpired, TokenInvalid

# -----------------------------------------------------------------------------
# Password Hashing
# -----------------------------------------------------------------------------

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Compared against when the login name does not exist, so both failure paths
# do the same amount of work.
_DUMMY_HASH = pwd_context.hash("not-a-real-password")


def hash_password(raw_password: str) -> str:
    """
    Hash a plaintext password using bcrypt (salt is generated per call).
    """
    return pwd_context.hash(raw_password)


def verify_password(raw_password: str, hashed_password: str) -> bool:
    """
    Verify that a raw password matches its hashed stored version.
    """
    try:
        return pwd_context.verify(raw_password, hashed_password)
    except (ValueError, TypeError):
        # Malformed hash in storage
        return False


def burn_password_check(raw_password: str) -> None:
    """Spend the same hashing time as a real check, for unknown login names."""
    pwd_context.verify(raw_password, _DUMMY_HASH)


# -----------------------------------------------------------------------------
# JWT Token Handling
# -----------------------------------------------------------------------------

def create_access_token(
    data: Dict[str, Any],
    secret_key: str,
    expires_minutes: int,
    algorithm: str = "HS256",
) -> str:
    """
    Create a JWT access token with expiration.

    Expected payload format:
        data = {"sub": "42", "role": "doctor"}

    Returns:
        Encoded JWT string.
    """
    to_encode = data.copy()
    issued_at = datetime.datetime.now(datetime.timezone.utc)
    expire_at = issued_at + datetime.timedelta(minutes=expires_minutes)
    to_encode.update({"iat": issued_at, "exp": expire_at})

    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_token(token: str, secret_key: str, algorithm: str = "HS256") -> Dict[str, Any]:
    """
    Decode and validate a JWT token.

    Raises:
        TokenExpired: signature is valid but `exp` has passed.
        TokenInvalid: bad signature, malformed token, or missing claims.
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except ExpiredSignatureError as e:
        raise TokenExpired() from e
    except JWTError as e:
        raise TokenInvalid() from e

    if "sub" not in payload or "role" not in payload:
        raise TokenInvalid()
    return payload
