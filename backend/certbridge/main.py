"""CertBridge API - FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CertBridgeError -> structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Long-lived collaborators built once in the lifespan and kept on app.state;
      they are released in reverse order on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Database pool created lazily: the lifespan only registers it, so the process
      starts even while the database is still coming up
    - Partner client only built when its credentials are configured
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from certbridge.api.error_handlers import register_error_handlers
from certbridge.api.routes import health, issuance, locker
from certbridge.config import get_settings
from certbridge.infrastructure.database import DatabasePool
from certbridge.infrastructure.object_store import S3ObjectStore
from certbridge.infrastructure.observability import setup_logging
from certbridge.infrastructure.partner_client import PartnerIssuerClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    app.state.db_pool = DatabasePool.from_url(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    app.state.object_store = S3ObjectStore.from_settings(settings)
    app.state.partner_client = (
        PartnerIssuerClient.from_settings(settings)
        if settings.partner_enabled else None
    )
    if not settings.locker_api_key:
        logger.warning("LOCKER_API_KEY is not set; locker requests will be rejected")

    logger.info("CertBridge API started")
    yield
    logger.info("CertBridge API shutting down")

    if app.state.partner_client is not None:
        await app.state.partner_client.aclose()
    await app.state.db_pool.shutdown()


app = FastAPI(
    title="CertBridge API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(health.router)
app.include_router(locker.router)
app.include_router(issuance.router)
