"""
FastAPI dependencies for authentication.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from ga_dashboard.auth.jwt import decode_access_token
from ga_dashboard.utils.logging import get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Validate the bearer token and return its subject.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if not credentials:
        logger.warning("auth_failed", reason="missing_token")
        raise _unauthorized("Missing authentication token")

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as e:
        logger.warning("auth_failed", reason="invalid_token", error=str(e))
        raise _unauthorized("Invalid or expired authentication token")

    subject: Optional[str] = payload.get("sub")
    if not subject:
        logger.warning("auth_failed", reason="missing_subject")
        raise _unauthorized("Invalid token payload")

    logger.debug("auth_success", subject=subject)
    return subject
