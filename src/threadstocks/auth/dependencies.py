"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers (or on a whole
router via include_router(dependencies=...)) to extract and validate
the current identity from the request.

Per request:
  no token                                → 401
  bad signature / expired / wrong alg     → 401
  valid                                   → identity on request.state,
                                            user_id bound into log context
"""

from typing import Optional

import structlog
from fastapi import Depends, Request

from threadstocks.auth.jwt import TokenError, verify_token
from threadstocks.config import Settings, get_settings
from threadstocks.errors import AuthError

logger = structlog.get_logger()

# Clients get one message for every rejected token; the reason is only logged.
INVALID_TOKEN = "invalid or expired token"


class CurrentIdentity:
    """The authenticated user making the request.

    Learn: All downstream code uses user_id to scope thread queries
    and to run ownership checks.
    """

    def __init__(self, user_id: int):
        self.user_id = user_id

    def __repr__(self) -> str:
        return f"CurrentIdentity(user_id={self.user_id})"


def extract_token(request: Request, settings: Settings) -> Optional[str]:
    """Find the session token: cookie first, then Authorization: Bearer."""
    token = request.cookies.get(settings.cookie_name)
    if token:
        return token

    authorization = request.headers.get("Authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme == "Bearer" and credentials.strip():
            return credentials.strip()

    return None


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no valid token)."""
    token = extract_token(request, settings)
    if not token:
        raise AuthError("Authentication required")

    try:
        payload = verify_token(token, settings)
    except TokenError as e:
        logger.info("auth.token_rejected", reason=str(e), path=request.url.path)
        raise AuthError(INVALID_TOKEN)

    identity = CurrentIdentity(user_id=int(payload["sub"]))
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(user_id=identity.user_id)
    return identity
