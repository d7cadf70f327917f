"""
JWT token creation and validation.
Uses python-jose for JWT handling.
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from ga_dashboard.config import get_settings

ADMIN_SUBJECT = "admin"


def check_access_code(code: str) -> bool:
    """Compare a submitted access code with the configured one in constant time."""
    settings = get_settings()
    return hmac.compare_digest(code.encode("utf-8"), settings.admin_access_code.encode("utf-8"))


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    settings = get_settings()
    to_encode = data.copy()

    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.jwt_expiration_minutes)

    to_encode.update({"exp": expire, "iat": now, "type": "access"})

    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        JWTError: If token is invalid, expired or not an access token
    """
    settings = get_settings()

    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise JWTError(f"Token validation failed: {str(e)}")

    if payload.get("type") != "access":
        raise JWTError("Token validation failed: invalid token type")
    return payload
