"""Service-level error taxonomy.

Learn: Services raise these instead of HTTPException so they stay usable
outside a request (CLI, tests). main.py installs one exception handler
that turns any ServiceError into a JSON response with its status_code.
Messages are safe to show to clients — never put hashes, SQL or
"does this email exist" hints in them.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class. Carries the HTTP status the API layer should use."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Malformed or mismatched input."""

    status_code = 400
    default_message = "Invalid request"


class AuthError(ServiceError):
    """Bad credentials, or a missing/invalid/expired token."""

    status_code = 401
    default_message = "Authentication required"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(ServiceError):
    """Valid identity acting on a record it does not own."""

    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found"


class ConflictError(ServiceError):
    """Uniqueness violation (username, email, thread id per owner)."""

    status_code = 409
    default_message = "Already exists"
