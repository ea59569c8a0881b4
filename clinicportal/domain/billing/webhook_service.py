"""Stripe webhook service - Applies subscription lifecycle events to tenants"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...models import BillingStatus, Tenant
from ..licensing.service import LicenseService
from .repository import BillingRepository

logger = logging.getLogger(__name__)

PAID_CHECKOUT_STATUSES = {"paid", "no_payment_required"}


def map_subscription_status(stripe_status: Optional[str]) -> str:
    """Map Stripe subscription status to internal billing status"""
    if stripe_status in ("active", "trialing"):
        return BillingStatus.ACTIVE
    if stripe_status == "past_due":
        return BillingStatus.PAST_DUE
    if stripe_status in ("canceled", "unpaid"):
        return BillingStatus.CANCELED
    if stripe_status in ("incomplete", "incomplete_expired"):
        return BillingStatus.INCOMPLETE
    return BillingStatus.PENDING


def subscription_quantity(subscription: dict) -> int:
    """Seat count from the first subscription item (Stripe defaults to 1)"""
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return 1
    quantity = items[0].get("quantity")
    return 1 if quantity is None else int(quantity)


def _from_timestamp(value: Optional[int]) -> Optional[datetime]:
    return datetime.utcfromtimestamp(value) if value else None


class StripeWebhookService:
    """Routes verified Stripe events to tenant updates and seat reconciliation"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()
        self.licenses = LicenseService(db)

    def handle_event(self, event: dict) -> bool:
        """Process one event; returns False for event types that are ignored"""
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        handlers: dict[str, Callable[[dict], None]] = {
            "checkout.session.completed": self.handle_checkout_session_completed,
            "customer.subscription.created": self.handle_subscription_created,
            "customer.subscription.updated": self.handle_subscription_updated,
            "customer.subscription.deleted": self.handle_subscription_deleted,
            "invoice.payment_succeeded": self.handle_invoice_payment_succeeded,
            "invoice.payment_failed": self.handle_invoice_payment_failed,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.info(f"Stripe webhook: Unhandled event type {event_type}")
            return False

        handler(obj)
        return True

    def _tenant_for_customer(self, customer_id: Optional[str]) -> Optional[Tenant]:
        if not customer_id:
            return None
        tenant = self.repo.get_tenant_by_stripe_id(self.db, customer_id)
        if not tenant:
            logger.warning(f"⚠️ No tenant for Stripe customer {customer_id}; skipping")
        return tenant

    def handle_checkout_session_completed(self, session: dict) -> None:
        """Link the paying Stripe customer to the tenant that started checkout"""
        tenant_id = session.get("client_reference_id") or (session.get("metadata") or {}).get("tenant_id")
        logger.info(
            f"Processing checkout.session.completed session={session.get('id')} "
            f"tenant={tenant_id} customer={session.get('customer')}"
        )
        if not tenant_id:
            logger.warning("⚠️ Checkout session has no tenant reference; skipping")
            return

        tenant = self.repo.get_tenant_by_id(self.db, tenant_id)
        if not tenant:
            logger.warning(f"⚠️ Tenant {tenant_id} from checkout session not found")
            return

        updates = {}
        if session.get("customer"):
            updates["stripe_id"] = session["customer"]
        if session.get("subscription"):
            updates["stripe_subscription_id"] = session["subscription"]
        if session.get("payment_status") in PAID_CHECKOUT_STATUSES:
            updates["billing_status"] = BillingStatus.ACTIVE
        self.repo.update_tenant(self.db, tenant, **updates)
        logger.info(f"✅ Tenant {tenant.id} linked to Stripe customer {tenant.stripe_id}")

    def handle_subscription_created(self, subscription: dict) -> None:
        logger.info(
            f"Subscription created id={subscription.get('id')} customer={subscription.get('customer')}"
        )
        tenant = self._tenant_for_customer(subscription.get("customer"))
        if not tenant:
            return

        trial_end = subscription.get("trial_end")
        self.repo.update_tenant(
            self.db,
            tenant,
            stripe_subscription_id=subscription.get("id"),
            number_of_seats=subscription_quantity(subscription),
            on_trial=bool(trial_end),
            trial_ends_at=_from_timestamp(trial_end),
        )
        self._reconcile_seats(tenant)

    def handle_subscription_updated(self, subscription: dict) -> None:
        logger.info(
            f"Subscription updated id={subscription.get('id')} customer={subscription.get('customer')} "
            f"status={subscription.get('status')}"
        )
        tenant = self._tenant_for_customer(subscription.get("customer"))
        if not tenant:
            return

        old_seats = tenant.number_of_seats
        trial_end = subscription.get("trial_end")
        self.repo.update_tenant(
            self.db,
            tenant,
            number_of_seats=subscription_quantity(subscription),
            billing_status=map_subscription_status(subscription.get("status")),
            on_trial=bool(trial_end and trial_end > time.time()),
            trial_ends_at=_from_timestamp(trial_end),
        )
        logger.info(f"Tenant {tenant.id} seats {old_seats} -> {tenant.number_of_seats}")
        self._reconcile_seats(tenant)

    def handle_subscription_deleted(self, subscription: dict) -> None:
        logger.info(
            f"Subscription deleted id={subscription.get('id')} customer={subscription.get('customer')}"
        )
        tenant = self._tenant_for_customer(subscription.get("customer"))
        if not tenant:
            return
        self.repo.update_tenant(
            self.db,
            tenant,
            billing_status=BillingStatus.CANCELED,
            subscription_ends_at=datetime.utcnow(),
        )

    def handle_invoice_payment_succeeded(self, invoice: dict) -> None:
        amount_paid = (invoice.get("amount_paid") or 0) / 100
        logger.info(
            f"Invoice payment succeeded id={invoice.get('id')} customer={invoice.get('customer')} "
            f"amount={amount_paid}"
        )
        tenant = self._tenant_for_customer(invoice.get("customer"))
        if not tenant:
            return
        self.repo.update_tenant(
            self.db,
            tenant,
            billing_status=BillingStatus.ACTIVE,
            total_amount_paid=amount_paid,
        )

    def handle_invoice_payment_failed(self, invoice: dict) -> None:
        logger.warning(
            f"Invoice payment failed id={invoice.get('id')} customer={invoice.get('customer')}"
        )
        tenant = self._tenant_for_customer(invoice.get("customer"))
        if not tenant:
            return
        self.repo.update_tenant(self.db, tenant, billing_status=BillingStatus.PAST_DUE)

    def _reconcile_seats(self, tenant: Tenant) -> None:
        """Bring licenses in line with the new seat count.

        A failure is logged and not retried; the next subscription event or a
        manual POST /licenses/reconcile repairs the seats.
        """
        try:
            result = self.licenses.reconcile_tenant_seats(tenant.id)
        except Exception:
            logger.exception(f"❌ Failed to create licenses for tenant {tenant.id}")
            return
        logger.info(
            f"🔑 Seats reconciled for tenant {tenant.id}: created={len(result.created)} "
            f"revoked={len(result.revoked)}"
        )
