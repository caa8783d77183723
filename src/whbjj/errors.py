"""API error taxonomy.

Services raise these; the global handlers in ``whbjj.middleware.error_handler``
render them as ``{"message": ..., **extra}`` with the matching status code.
"""

from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """Base class for errors that map directly to an HTTP response."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Response body for this error."""
        return {"message": self.message, **self.extra}


class ValidationError(ApiError):
    """Malformed or missing input, or a duplicate value on a unique field."""

    status_code = 400
    default_message = "Validation error"


class DuplicateIdentity(ValidationError):
    """Username or email already belongs to another account."""

    default_message = "Username or email already exists"


class InvalidCredentials(ValidationError):
    """Unknown email or wrong password at login."""

    default_message = "Invalid credentials"


class Unauthenticated(ApiError):
    """No bearer token on a protected request."""

    status_code = 401
    default_message = "No token provided"


class InvalidToken(ApiError):
    """Bad signature, wrong type, expired, or the subject no longer exists."""

    status_code = 401
    default_message = "Invalid or expired token"


class Forbidden(ApiError):
    """Authenticated but not allowed."""

    status_code = 403
    default_message = "Access denied"


class MembershipRequired(Forbidden):
    """Non-admin without an active membership. Carries a flag for the client."""

    default_message = "Active membership required to access this content"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        super().__init__(message, requiresMembership=True, **extra)


class NotFound(ApiError):
    """Referenced entity does not exist."""

    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    """Operation blocked by existing references."""

    status_code = 409
    default_message = "Conflict"
