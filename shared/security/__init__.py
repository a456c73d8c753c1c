from .jwt_handler import create_access_token, create_user_token, verify_access_token
from .dependencies import ADMIN_ROLE, USER_ROLE, Principal, get_current_user, require_admin
from .rate_limiter import limiter, user_id_or_ip

__all__ = [
    "create_access_token",
    "create_user_token",
    "verify_access_token",
    "ADMIN_ROLE",
    "USER_ROLE",
    "Principal",
    "get_current_user",
    "require_admin",
    "limiter",
    "user_id_or_ip"
]
