from typing import Optional

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from .jwt_handler import verify_access_token


def bearer_subject(request: Request) -> Optional[str]:
    """The `sub` claim of a valid bearer token on the request, if any."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    payload = verify_access_token(token)
    return payload.get("sub") if payload else None


def user_id_or_ip(request: Request) -> str:
    """
    Key function for SlowAPI.
    Staff placing orders are limited per account; anything without a
    valid token falls back to the client address.
    """
    subject = bearer_subject(request)
    if subject:
        return f"user:{subject}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=user_id_or_ip)
