"""
Bearer token guards

Admin endpoints require ADMIN_API_TOKEN, scheduler-invoked endpoints require
CRON_SECRET. Both are compared in constant time.
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import config
from .errors import AuthorizationError

logger = logging.getLogger(__name__)

# Missing headers are reported through the 401 envelope
security = HTTPBearer(auto_error=False)


def _token_matches(credentials: Optional[HTTPAuthorizationCredentials], expected: Optional[str]) -> bool:
    if not expected or credentials is None or not credentials.credentials:
        return False
    return hmac.compare_digest(credentials.credentials.encode("utf-8"), expected.encode("utf-8"))


async def require_admin(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> None:
    if not config.ADMIN_API_TOKEN:
        logger.error("❌ ADMIN_API_TOKEN not configured - rejecting admin request")
    if not _token_matches(credentials, config.ADMIN_API_TOKEN):
        logger.warning("🚫 Admin request with missing or invalid token")
        raise AuthorizationError("Unauthorized")


async def require_cron_secret(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> None:
    if not config.CRON_SECRET:
        logger.error("❌ CRON_SECRET not configured - rejecting cron request")
    if not _token_matches(credentials, config.CRON_SECRET):
        logger.warning("🚫 Cron request with missing or invalid secret")
        raise AuthorizationError("Unauthorized")
