"""Security: rate limiting and the shared secret for job trigger endpoints."""

import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.util import get_remote_address

from fixturecast.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Rate limiter using client IP
limiter = Limiter(key_func=get_remote_address)

cron_secret_header = APIKeyHeader(name=settings.CRON_SECRET_HEADER, auto_error=False)


async def verify_cron_secret(
    secret: Optional[str] = Security(cron_secret_header),
) -> bool:
    """
    Verify the shared secret sent by the external timer.

    Empty CRON_SECRET allows all requests (development only).
    """
    expected = get_settings().CRON_SECRET
    if not expected:
        return True

    if not secret:
        raise HTTPException(
            status_code=401,
            detail=f"Missing cron secret. Provide it via {settings.CRON_SECRET_HEADER} header.",
        )

    if not hmac.compare_digest(secret, expected):
        logger.warning("Invalid cron secret attempt")
        raise HTTPException(status_code=403, detail="Invalid cron secret")

    return True
