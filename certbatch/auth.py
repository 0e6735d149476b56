"""
Bearer-token checks for the certificate API.

Tokens are HS256 JWTs signed with ``CERTBATCH_JWT_SECRET``. When the secret is
empty the API runs unauthenticated (local use), and every request passes.
"""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import config

_bearer = HTTPBearer(auto_error=False)


def auth_enabled() -> bool:
    return bool(config.JWT_SECRET)


def decode_token(token: str) -> dict:
    """Validate a token and return its claims. Raises jwt.InvalidTokenError."""
    if not config.JWT_SECRET:
        raise jwt.InvalidTokenError("CERTBATCH_JWT_SECRET is not set.")
    return jwt.decode(
        token,
        config.JWT_SECRET,
        algorithms=["HS256"],
        options={"verify_aud": False},
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> dict:
    """FastAPI dependency returning the token claims (empty when auth is off)."""
    if not auth_enabled():
        return {}
    if credentials is None:
        raise _unauthorized("Missing or invalid Authorization header.")
    try:
        return decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired.")
    except jwt.InvalidTokenError as exc:
        raise _unauthorized(f"Invalid token: {exc}")
