"""
JWT session handling for the admin API.

This module provides:
- JWT token creation and verification
- FastAPI dependency for admin-only routes

Tokens are accepted from the session cookie or an ``Authorization: Bearer``
header, so both a browser session and scripted calls can reach the admin
endpoints.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Cookie, Header, HTTPException, Request
from jose import JWTError, jwt

from podcast_library.config import Config

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "podcast_library_session"


def create_access_token(user_data: dict, config: Config) -> str:
    """
    Create a JWT access token.

    Args:
        user_data: Claims to encode in the token.
            Expected keys: sub, and is_admin for admin access.
        config: Application configuration with JWT settings.

    Returns:
        str: Encoded JWT token.

    Raises:
        ValueError: If JWT_SECRET_KEY is not configured or algorithm is invalid.
    """
    if not config.JWT_SECRET_KEY:
        raise ValueError("JWT_SECRET_KEY must be configured")

    # 'none' would accept unsigned tokens
    if config.JWT_ALGORITHM.lower() == "none":
        raise ValueError("JWT algorithm 'none' is not allowed")

    expire = datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRATION_DAYS)
    to_encode = {
        **user_data,
        "exp": expire,
        "iat": datetime.now(timezone.utc)
    }
    return jwt.encode(to_encode, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def verify_token(token: str, config: Config) -> Optional[dict]:
    """
    Verify a JWT token and return its payload.

    Args:
        token: The JWT token to verify.
        config: Application configuration with JWT settings.

    Returns:
        Optional[dict]: Token payload if valid, None otherwise.
    """
    if not config.JWT_SECRET_KEY:
        logger.warning("JWT verification skipped: JWT_SECRET_KEY is not configured")
        return None

    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET_KEY,
            algorithms=[config.JWT_ALGORITHM]
        )
        return payload
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_admin(
    request: Request,
    podcast_library_session: Optional[str] = Cookie(default=None),
    authorization: Optional[str] = Header(default=None),
) -> dict:
    """
    FastAPI dependency to require admin access.

    Args:
        request: FastAPI request object.
        podcast_library_session: Session cookie containing the JWT.
        authorization: Optional ``Bearer`` header containing the JWT.

    Returns:
        dict: Claims from the JWT payload.

    Raises:
        HTTPException: 401 if not authenticated or token is invalid.
        HTTPException: 403 if authenticated but not an admin.
    """
    config = request.app.state.config

    token = podcast_library_session or _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user_data = verify_token(token, config)
    if not user_data:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    if user_data.get("is_admin") is not True:
        raise HTTPException(status_code=403, detail="Admin access required")

    return user_data
