"""Core routes: health, metrics.

- /health: public, rate limited; database probe and last section sync
- /metrics: Bearer token when METRICS_BEARER_TOKEN is set
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from fixturecast.config import get_settings
from fixturecast.database import get_async_session
from fixturecast.jobs.sync import SECTION_SYNC_JOB
from fixturecast.jobs.tracking import get_last_success_at
from fixturecast.models import to_utc_iso
from fixturecast.security import limiter
from fixturecast.telemetry import get_metrics_text

router = APIRouter(tags=["core"])
logger = logging.getLogger(__name__)
settings = get_settings()


class HealthResponse(BaseModel):
    status: str
    database: bool
    last_section_sync: Optional[str] = None


@router.get("/health", response_model=HealthResponse)
@limiter.limit("120/minute")
async def health_check(request: Request, session: AsyncSession = Depends(get_async_session)):
    """Health check endpoint."""
    last_sync = None
    try:
        await session.execute(text("SELECT 1"))
        last_sync = await get_last_success_at(session, SECTION_SYNC_JOB)
        database_ok = True
    except Exception as e:
        logger.warning(f"Health check database probe failed: {e}")
        database_ok = False

    return HealthResponse(
        status="ok" if database_ok else "degraded",
        database=database_ok,
        last_section_sync=to_utc_iso(last_sync),
    )


@router.get("/metrics")
async def prometheus_metrics(
    authorization: str = Header(None, alias="Authorization"),
):
    """
    Prometheus metrics endpoint.

    Exposes provider request/error/latency counters, reconciliation row
    counts and job run metrics.
    """
    expected_token = settings.METRICS_BEARER_TOKEN
    if expected_token:
        if not authorization:
            return PlainTextResponse(
                content="# Unauthorized: Missing Authorization header\n",
                status_code=401,
                media_type="text/plain",
            )
        # Extract token from "Bearer <token>"
        parts = authorization.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return PlainTextResponse(
                content="# Unauthorized: Invalid Authorization format\n",
                status_code=401,
                media_type="text/plain",
            )
        if parts[1] != expected_token:
            return PlainTextResponse(
                content="# Unauthorized: Invalid token\n",
                status_code=401,
                media_type="text/plain",
            )

    content, content_type = get_metrics_text()
    return PlainTextResponse(content=content, media_type=content_type)
