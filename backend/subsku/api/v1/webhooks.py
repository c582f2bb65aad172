"""Shopify webhook endpoints."""

import json

import structlog
from fastapi import APIRouter, HTTPException, Request, Response

from subsku.config import settings
from subsku.models.enums import WebhookTopic
from subsku.tasks.webhooks import process_webhook
from subsku.utils.shopify_helpers import verify_webhook_hmac

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/webhooks/shopify")
async def shopify_webhook(request: Request) -> Response:
    """
    Handle Shopify inventory webhooks.

    1. Verify HMAC signature
    2. Read the topic from X-Shopify-Topic
    3. Enqueue background processing task
    4. Return 200 immediately

    The actual processing happens in the background via Dramatiq.
    """
    # Read body first (before any async operations)
    body = await request.body()

    # Verify HMAC
    hmac_header = request.headers.get("X-Shopify-Hmac-Sha256")
    if not verify_webhook_hmac(body, hmac_header, settings.shopify_webhook_secret):
        logger.warning("Invalid Shopify webhook HMAC")
        raise HTTPException(status_code=401, detail="Invalid HMAC signature")

    topic = request.headers.get("X-Shopify-Topic", "")
    webhook_id = request.headers.get("X-Shopify-Webhook-Id")
    try:
        topic = WebhookTopic(topic).value
    except ValueError:
        # Acknowledge so Shopify does not keep redelivering topics we do not handle
        logger.info("Ignoring unsupported webhook topic", topic=topic)
        return Response(status_code=200)

    # Parse payload
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in webhook payload", error=str(e))
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    process_webhook.send(topic, payload, webhook_id)
    logger.info("Enqueued webhook for processing", topic=topic, webhook_id=webhook_id)

    # Return 200 immediately (Shopify expects fast response)
    return Response(status_code=200)
