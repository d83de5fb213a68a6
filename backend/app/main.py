"""
FastAPI application entry point.

Run with:
    uvicorn backend.app.main:app --port 8000

Point an SNS HTTPS subscription (or a Lambda forwarder) at
``POST /api/v1/notify``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

# ── Core infrastructure ──
from backend.app.core.config import settings
from backend.app.core.logging_config import setup_logging
from backend.app.core.errors import register_error_handlers
from backend.app.core.middleware import RequestLoggingMiddleware

# ── API routers ──
from backend.app.api.v1.notify import router as notify_router

# ── Initialise logging ──
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup and shutdown."""
    logger.info(
        "Starting %s v%s [%s]",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
    )
    if not settings.TEAMS_HOOK_URL:
        logger.warning("TEAMS_HOOK_URL is not set; deliveries will fail")
    yield
    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Relays AWS SNS notifications and CloudWatch alarms to a "
        "Microsoft Teams channel as Adaptive Cards."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

register_error_handlers(app)

app.include_router(notify_router)


@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs": "/docs",
    }


@app.get("/health/live", tags=["health"])
async def liveness():
    """Liveness probe: is the process alive?"""
    return {"status": "alive"}
