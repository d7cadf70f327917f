"""API routers for all endpoints."""

from ga_dashboard.routers import analytics, auth

__all__ = ["auth", "analytics"]
