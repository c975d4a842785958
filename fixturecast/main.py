"""FastAPI application for the fixturecast dashboard backend."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fixturecast.config import get_settings
from fixturecast.database import close_db, init_db
from fixturecast.routes.api import router as api_router
from fixturecast.routes.core import router as core_router
from fixturecast.scheduler import start_scheduler, stop_scheduler
from fixturecast.security import limiter
from fixturecast.telemetry.sentry import init_sentry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking (before FastAPI app creation)
# Only activates if SENTRY_DSN is set in environment
init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting fixturecast...")
    await init_db()
    start_scheduler()

    yield

    logger.info("Shutting down fixturecast...")
    stop_scheduler()
    await close_db()


app = FastAPI(
    title="fixturecast",
    description="Football fixtures, odds and forecast accuracy for the dashboard",
    version="1.0.0",
    lifespan=lifespan,
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Include routers
app.include_router(core_router)
app.include_router(api_router)
