from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request

from config import get_config
from errors import Unauthorized
from log import get_logger

logger = get_logger(__name__)

ALGORITHM = "HS256"


def create_access_token(user_id: str, expires_in: Optional[timedelta] = None) -> str:
    """Issue a signed token carrying ``userId``, as the account service does on login."""
    config = get_config()
    expires_in = expires_in or timedelta(hours=config.token_ttl_hours)
    payload = {
        "userId": str(user_id),
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, config.secret_key, algorithm=ALGORITHM)


def _read_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get("token")


def get_current_user_id(request: Request) -> str:
    """FastAPI dependency resolving the authenticated user id."""
    token = _read_token(request)
    if not token:
        raise Unauthorized("User not authenticated")
    try:
        payload = jwt.decode(token, get_config().secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("Rejected expired token")
        raise Unauthorized("Token has expired")
    except jwt.InvalidTokenError:
        logger.warning("Rejected invalid token")
        raise Unauthorized("Invalid token")
    user_id = payload.get("userId")
    if not user_id:
        raise Unauthorized("Invalid token")
    return str(user_id)
