"""
Endpoint Dependencies

Shared dependencies for lifecycle API endpoints.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Header, HTTPException

from access_backend.core.conf import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller, taken from the bearer token."""
    id: str
    email: Optional[str] = None


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> CurrentUser:
    """
    Verify the bearer JWT and return the caller.

    ``sub`` is the user ID and ``email`` the user's email.
    This is a dependency that can be overridden in tests.
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    if not settings.TOKEN_SECRET_KEY:
        logger.error("[AUTH] TOKEN_SECRET_KEY not configured")
        raise HTTPException(status_code=401, detail="Auth not configured")

    token = authorization[7:] if authorization.startswith("Bearer ") else authorization

    try:
        decoded = jwt.decode(
            token,
            settings.TOKEN_SECRET_KEY,
            algorithms=[settings.TOKEN_ALGORITHM],
            audience=settings.TOKEN_AUDIENCE,
            options={'verify_aud': settings.TOKEN_AUDIENCE is not None},
        )
    except jwt.InvalidTokenError as e:
        logger.warning(f"[AUTH] Invalid token: {type(e).__name__}")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user_id = decoded.get('sub')
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return CurrentUser(id=user_id, email=decoded.get('email'))


async def verify_cron_secret(
    x_cron_secret: Optional[str] = Header(None, alias="x-cron-secret")
) -> None:
    """Authenticate the external scheduler by its shared secret."""
    if not settings.CRON_SECRET:
        logger.error("[AUTH] CRON_SECRET not configured")
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.CRON_SECRET):
        logger.warning("[AUTH] Invalid cron secret")
        raise HTTPException(status_code=401, detail="Unauthorized")
