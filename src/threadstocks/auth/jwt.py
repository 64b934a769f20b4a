"""JWT session token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
A session token lives 72 hours by default and carries:
- sub: the user id (as a string)
- iss: who issued it (settings.jwt_issuer)
- iat / exp: issued-at and expiry

There is no server-side revocation list. Logout only drops the cookie,
so a copied token stays valid until exp.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from threadstocks.config import Settings

REQUIRED_CLAIMS = ["sub", "iss", "iat", "exp"]


class TokenError(Exception):
    """Raised when token verification fails."""


def create_session_token(
    user_id: int,
    settings: Settings,
    now: Optional[datetime] = None,
) -> str:
    """Create a signed session token for user_id."""
    issued = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iss": settings.jwt_issuer,
        "iat": issued,
        "exp": issued + timedelta(hours=settings.token_expire_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, settings: Settings) -> dict:
    """Verify and decode a session token.

    Returns the payload dict on success.
    Raises TokenError on failure.

    Learn: algorithms=[...] pins the accepted algorithm — a token whose
    header says "none" or any other algorithm is rejected before the
    signature is even looked at.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if not isinstance(payload["sub"], str) or not payload["sub"].isdigit():
        raise TokenError("Invalid token: malformed subject")
    return payload
