"""
Billing Domain

Stripe subscription webhooks driving tenant billing state and seat counts:
- webhook_service.py  StripeWebhookService (event dispatch)
- router.py           POST /webhooks/stripe
"""

from .router import webhooks_router
from .webhook_service import StripeWebhookService, map_subscription_status

__all__ = ["webhooks_router", "StripeWebhookService", "map_subscription_status"]
