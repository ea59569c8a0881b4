"""Billing router - Stripe webhook endpoint"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...cache import cache
from ...config import STRIPE_WEBHOOK_SECRET, STRIPE_WEBHOOK_TOLERANCE, WEBHOOK_IDEMPOTENCY_TTL
from ...database import get_db
from ...webhook_security import WebhookSignatureError, verify_stripe_webhook
from .webhook_service import StripeWebhookService

logger = logging.getLogger(__name__)

webhooks_router = APIRouter(tags=["Webhooks"])


def get_webhook_service(db: Session = Depends(get_db)) -> StripeWebhookService:
    """Dependency injection for StripeWebhookService"""
    return StripeWebhookService(db)


@webhooks_router.post("/webhooks/stripe")
async def handle_stripe_webhook(
    request: Request,
    service: StripeWebhookService = Depends(get_webhook_service),
):
    """
    Verify the Stripe signature and apply subscription lifecycle events.

    Security:
      - Stripe-Signature checked against the raw body with a timestamp tolerance
      - Event ids are remembered so redelivered events are not applied twice
    """
    if not STRIPE_WEBHOOK_SECRET:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
        return JSONResponse(status_code=500, content={"error": "Webhook not configured"})

    try:
        raw_body = await verify_stripe_webhook(request, STRIPE_WEBHOOK_SECRET, STRIPE_WEBHOOK_TOLERANCE)
    except WebhookSignatureError:
        return JSONResponse(status_code=400, content={"error": "Invalid signature"})

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except ValueError as e:
        logger.error(f"Failed to parse webhook JSON: {e}")
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})

    # The event id is the idempotency key, so an event without one is never processed
    if not isinstance(event, dict) or not event.get("id"):
        logger.error("Stripe webhook payload is not an event object with an id")
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})

    event_id = event["id"]
    event_type = event.get("type")
    logger.info(f"🔔 Stripe webhook received id={event_id} type={event_type}")

    idempotency_key = f"webhook_processed:{event_id}"
    if cache.get(idempotency_key):
        logger.info(f"🔄 Webhook {event_id} already processed, skipping (idempotency)")
        return {"status": "already_processed"}

    cache.set(idempotency_key, True, ttl=WEBHOOK_IDEMPOTENCY_TTL)

    try:
        service.handle_event(event)
    except Exception as e:
        logger.error(f"❌ Error processing Stripe webhook {event_id} ({event_type}): {e}", exc_info=True)
        # Let Stripe redeliver
        cache.delete(idempotency_key)
        return JSONResponse(status_code=500, content={"error": "Processing failed"})

    return {"status": "success"}
