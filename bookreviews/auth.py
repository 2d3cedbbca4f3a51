"""
Bearer token authentication for the FastAPI API.

Tokens are JWTs signed with the configured secret. The authenticated user is
identified by the ``user_id`` claim, falling back to ``sub``.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from bookreviews.config import config

logger = structlog.get_logger(__name__)

# Security scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False, bearerFormat="JWT")


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(
    user_id: str,
    expires_minutes: Optional[int] = None,
    extra_claims: Optional[Dict[str, Any]] = None
) -> str:
    """
    Create a signed access token for a user.

    Args:
        user_id: Identity to embed in the token
        expires_minutes: Lifetime in minutes (defaults to the configured value)
        extra_claims: Additional claims to include

    Returns:
        Encoded JWT
    """
    if expires_minutes is None:
        expires_minutes = config.access_token_expire_minutes
    now = datetime.now(timezone.utc)
    claims = dict(extra_claims or {})
    claims.update({
        "sub": user_id,
        "user_id": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    })
    return jwt.encode(claims, config.secret_key, algorithm=config.algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify a token's signature and expiry and return its claims.

    Raises:
        HTTPException: 401 if the token is invalid or expired
    """
    try:
        return jwt.decode(token, config.secret_key, algorithms=[config.algorithm])
    except JWTError as e:
        logger.warning("Invalid bearer token", error=str(e))
        raise unauthorized("Invalid or expired token")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    Resolve the authenticated user id from the Authorization header.

    Args:
        credentials: HTTP authorization credentials

    Returns:
        User id of the token holder

    Raises:
        HTTPException: If the token is missing or invalid
    """
    if credentials is None:
        raise unauthorized("Not authenticated")

    if credentials.scheme.lower() != "bearer":
        raise unauthorized("Bearer token required")

    claims = decode_access_token(credentials.credentials)

    user_id = claims.get("user_id") or claims.get("sub")
    if not user_id:
        logger.warning("Token without user id rejected")
        raise unauthorized("Token does not identify a user")

    return str(user_id)
