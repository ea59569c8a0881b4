"""
Webhook Security Module

Signature verification for the Stripe billing webhook:
- Stripe-Signature header ("t=<timestamp>,v1=<signature>") checked by the Stripe SDK
- Timestamp tolerance to reject replays
- Raw request body is used so the signed bytes match exactly
"""

import logging

import stripe
from fastapi import Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails"""

    pass


async def verify_stripe_webhook(
    request: Request, secret: str, tolerance: int = MAX_WEBHOOK_AGE_SECONDS
) -> bytes:
    """
    Verify the Stripe-Signature header against the raw request body.

    Returns:
        The raw body bytes once the signature checks out

    Raises:
        WebhookSignatureError: header missing, malformed, expired or not matching
    """
    raw_body = await request.body()
    signature_header = request.headers.get("Stripe-Signature", "")

    if not signature_header:
        logger.warning("🚫 Stripe webhook missing signature header")
        raise WebhookSignatureError("Missing webhook signature")

    try:
        stripe.WebhookSignature.verify_header(
            raw_body.decode("utf-8"), signature_header, secret, tolerance
        )
    except UnicodeDecodeError as e:
        logger.warning("🚫 Stripe webhook body is not valid UTF-8")
        raise WebhookSignatureError("Invalid payload encoding") from e
    except stripe.SignatureVerificationError as e:
        logger.warning(f"🚫 Stripe webhook signature rejected: {e}")
        raise WebhookSignatureError(str(e)) from e

    logger.debug("✅ Stripe webhook signature verified")
    return raw_body

