"""JWT authentication helpers.

Provides token creation/verification and a FastAPI dependency that extracts
the current user from the ``Authorization: Bearer <token>`` header.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Request
from loguru import logger

from dadafarin.application.exceptions import UnauthorizedError
from dadafarin.config import Settings

# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------

ALGORITHM = "HS256"


@dataclass
class AuthenticatedUser:
    """The user extracted from a valid JWT."""

    user_id: int
    email: str


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def create_token(settings: Settings, user_id: int, email: str) -> str:
    """Create a signed JWT containing user claims."""
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "userId": user_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(hours=settings.jwt_expiry_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(settings: Settings, token: str) -> dict:
    """Decode and verify a JWT. Raises on invalid/expired tokens."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------


async def get_current_user(request: Request) -> AuthenticatedUser:
    """FastAPI dependency: extract the user from the bearer JWT."""
    settings: Settings = request.app.state.settings

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise UnauthorizedError("Missing or invalid Authorization header")

    token = auth_header[7:]
    try:
        claims = decode_token(settings, token)
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired") from None
    except jwt.InvalidTokenError:
        logger.warning("Invalid JWT presented")
        raise UnauthorizedError("Invalid token") from None

    try:
        user_id = int(claims["userId"])
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedError("Invalid token") from None

    return AuthenticatedUser(user_id=user_id, email=claims.get("email", ""))
