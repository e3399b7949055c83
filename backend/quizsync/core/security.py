"""Access token handling for the hosted auth provider.

Credential issuance lives with the auth provider; this service only verifies
the HS256 access tokens it signs and reads the principal out of them.
"""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

import jwt

from quizsync.core.config import settings
from quizsync.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ROLE = "authenticated"


def create_access_token(user_id: str, role: str = DEFAULT_ROLE, email: str | None = None) -> str:
    """Create a JWT access token (local development and tests)."""
    if not settings.JWT_SECRET:
        raise ValueError("JWT_SECRET must be set")

    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload: dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": expire,
        "jti": str(uuid4()),
    }
    if email:
        payload["email"] = email
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def verify_access_token(token: str) -> dict[str, Any]:
    """Verify and decode a JWT access token.

    Raises:
        jwt.InvalidTokenError: expired, badly signed, or missing a UUID subject
    """
    if not settings.JWT_SECRET:
        raise ValueError("JWT_SECRET must be set")

    options = {"require": ["sub", "exp"]}
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise jwt.InvalidTokenError("Token has expired")

    try:
        UUID(str(payload["sub"]))
    except ValueError:
        raise jwt.InvalidTokenError("Token subject is not a user id") from None
    return payload
