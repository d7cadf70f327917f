"""Access-code login and JWT bearer authentication."""

from ga_dashboard.auth.dependencies import get_current_admin
from ga_dashboard.auth.jwt import check_access_code, create_access_token, decode_access_token

__all__ = ["check_access_code", "create_access_token", "decode_access_token", "get_current_admin"]
