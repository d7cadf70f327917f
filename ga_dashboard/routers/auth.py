"""
Authentication router - access-code login and JWT issuance.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ga_dashboard.auth.dependencies import get_current_admin
from ga_dashboard.auth.jwt import ADMIN_SUBJECT, check_access_code, create_access_token
from ga_dashboard.config import get_settings
from ga_dashboard.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class LoginRequest(BaseModel):
    """Access code submitted from the login screen."""

    code: str = Field(..., min_length=1, max_length=16)


@router.post("/login")
async def login(body: LoginRequest):
    """Exchange the dashboard access code for a bearer token."""
    if not check_access_code(body.code):
        logger.warning("login_failed", reason="invalid_code")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access code")

    settings = get_settings()
    token = create_access_token(data={"sub": ADMIN_SUBJECT})
    logger.info("jwt_issued", subject=ADMIN_SUBJECT)

    return {
        "success": True,
        "token": token,
        "expiresIn": settings.jwt_expiration_minutes * 60,
    }


@router.get("/verify")
async def verify(subject: str = Depends(get_current_admin)):
    """Confirm that the presented token is still valid."""
    return {"success": True, "data": {"valid": True, "subject": subject}}


@router.post("/logout")
async def logout():
    """
    Logout endpoint.
    Tokens are stateless; the client discards its copy.
    """
    logger.info("user_logout")
    return {"success": True, "message": "Logged out successfully"}
