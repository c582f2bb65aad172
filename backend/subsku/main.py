"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from subsku.api.v1 import health, webhooks
from subsku.config import settings
from subsku.logging import setup_logging

# Configure logging before anything else
setup_logging()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting sub-SKU inventory API", debug=settings.debug)
    if not settings.shopify_webhook_secret:
        logger.warning("Shopify webhook secret not configured, all webhooks will be rejected")

    yield

    logger.info("Shutting down sub-SKU inventory API")


app = FastAPI(
    title="Sub-SKU Inventory API",
    description="Shopify webhook intake for sub-SKU inventory tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# API routes
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(webhooks.router, prefix="/api/v1", tags=["webhooks"])
