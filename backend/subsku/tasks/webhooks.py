"""Webhook processing background task."""

import asyncio
from typing import Any

import dramatiq
import structlog

from subsku.config import settings
from subsku.services.exceptions import ValidationError
from subsku.services.external.shopify import ShopifyService
from subsku.services.results import OperationResult
from subsku.tasks.task_db import task_session_maker
from subsku.utils.rate_limiter import RateLimiter
from subsku.utils.redis_lock import LockUnavailable, RedisLock
from subsku.webhooks.dispatcher import EventDispatcher, event_lock_key
from subsku.webhooks.events import WebhookEvent, parse_webhook

logger = structlog.get_logger(__name__)


@dramatiq.actor(
    max_retries=settings.webhook_max_retries,
    min_backoff=1000,
    max_backoff=60000,
    time_limit=settings.webhook_time_limit_ms,
)
def process_webhook(topic: str, payload: dict[str, Any], webhook_id: str | None = None) -> None:
    """Background task running one Shopify webhook through the engine.

    Invalid payloads and business failures (unknown SKU, missing order) are
    logged and acknowledged. Transient failures (Shopify unavailable, pool
    write conflicts exhausted) raise so Dramatiq retries with backoff. The
    same applies when another worker holds the lock for the same order.
    """
    structlog.contextvars.bind_contextvars(topic=topic, webhook_id=webhook_id)
    try:
        try:
            event = parse_webhook(topic, payload)
        except ValidationError as e:
            logger.error("Dropping invalid webhook", error=str(e))
            return

        lock_key = event_lock_key(event)
        if lock_key is None:
            result = asyncio.run(_process_webhook_async(event))
        else:
            try:
                with RedisLock(lock_key, ttl=settings.webhook_lock_ttl):
                    result = asyncio.run(_process_webhook_async(event))
            except LockUnavailable:
                logger.info("Event for the same resource is being processed, retrying later", lock_key=lock_key)
                raise

        if result.success:
            logger.info("Webhook processed")
        else:
            logger.warning("Webhook failed", error=result.error, error_kind=result.error_kind)
    finally:
        structlog.contextvars.clear_contextvars()


async def _process_webhook_async(event: WebhookEvent) -> OperationResult:
    """Async implementation of webhook processing."""
    shopify = ShopifyService(RateLimiter(settings.shopify_min_request_interval))
    async with task_session_maker() as session_maker:
        dispatcher = EventDispatcher(session_maker, shopify)
        return await dispatcher.dispatch(event)
