"""
errors.py — Error Taxonomy and HTTP Envelope Translation

Purpose:
- Define the exception hierarchy raised by services (never HTTPException).
- Translate every failure into the uniform envelope
  `{"success": false, "message": ..., "error"?: ...}`.

Mapping:
- AuthError        → 401
- ForbiddenError   → 403
- NotFoundError    → 404
- ValidationError  → 400
- ConflictError    → 400
- StorageError / PersistenceError → 500 with a generic message; the detail is
  logged server-side and only echoed to the client in development mode.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.core.logging import get_logger

logger = get_logger(__name__)

GENERIC_SERVER_MESSAGE = "Server error"


# -----------------------------------------------------------------------------
# Exception Hierarchy
# -----------------------------------------------------------------------------

class PortalError(Exception):
    """Base class for every error the services raise on purpose."""

    status_code = 500
    default_message = GENERIC_SERVER_MESSAGE

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class AuthError(PortalError):
    status_code = 401
    default_message = "Authentication required"


class InvalidCredentials(AuthError):
    default_message = "Invalid credentials"


class TokenInvalid(AuthError):
    default_message = "Token is not valid"


class TokenExpired(AuthError):
    default_message = "Token has expired"


class UserNotFound(AuthError):
    """Token was valid but its user row is gone."""

    default_message = "User no longer exists"


class ForbiddenError(PortalError):
    status_code = 403
    default_message = "Access forbidden"


class NotFoundError(PortalError):
    status_code = 404
    default_message = "Not found"


class ValidationError(PortalError):
    status_code = 400
    default_message = "Invalid request"


class InvalidRole(ValidationError):
    default_message = "Invalid role"


class ConflictError(PortalError):
    status_code = 400
    default_message = "Conflict"


class DuplicateLogin(ConflictError):
    default_message = "Username already exists"


class AlreadyAssigned(ConflictError):
    default_message = "Container already assigned to user"


class ContainerNotAssigned(ConflictError):
    default_message = "Container not assigned to user"


class StorageError(PortalError):
    """Object store unavailable or returned an unexpected error."""


class PersistenceError(PortalError):
    """Database unavailable or a transaction failed."""


# -----------------------------------------------------------------------------
# Envelope Helpers
# -----------------------------------------------------------------------------

def error_body(message: str, error: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return body


def _expose_detail(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.is_development)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Attach handlers so no raw stack trace or framework-shaped body reaches a client.
    """

    @app.exception_handler(PortalError)
    async def handle_portal_error(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.error(
                "%s on %s %s: %s",
                type(exc).__name__, request.method, request.url.path, exc.detail or exc.message,
            )
            error = (exc.detail or exc.message) if _expose_detail(request) else None
            return JSONResponse(status_code=exc.status_code, content=error_body(GENERIC_SERVER_MESSAGE, error))
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {location} {first.get('msg', '')}".strip()
        return JSONResponse(status_code=400, content=error_body(message))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        error = str(exc) if _expose_detail(request) else None
        return JSONResponse(status_code=500, content=error_body(GENERIC_SERVER_MESSAGE, error))
