"""
Bearer token helpers.

WHAT: Issue and verify signed access tokens carrying a user id
WHY: REST endpoints and the realtime socket must know who is calling
HOW: PyJWT with the configured secret/algorithm and an exp claim
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Header

from .config import settings
from ..utils.exceptions import AuthenticationException


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {"sub": user_id, "exp": expires}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """
    Verify a token and return the user id it was issued for.

    Raises:
        AuthenticationException: expired, tampered or malformed token
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationException("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationException("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationException("Token has no subject")
    return user_id


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user_id(authorization: Optional[str] = Header(default=None)) -> str:
    """FastAPI dependency resolving the caller from the Authorization header."""
    token = extract_bearer_token(authorization)
    if not token:
        raise AuthenticationException()
    return decode_access_token(token)
