"""
Map verified Dodo webhook events to purchase row changes.

Each event produces at most one single-row mutation. A missing user or missing row is a
normal, logged outcome: Dodo only retries on transport failures, so nothing here is
reported back to the provider as an error.
"""
import logging

from sqlalchemy.orm import Session

from app.core.plans import SUBSCRIPTION_PLAN, plan_for_product
from app.models.purchase import PurchaseStatus
from app.services import purchases
from app.services.webhook_events import (
    CheckoutCompleted,
    RecurringPaymentNotice,
    SubscriptionActivated,
    SubscriptionCancelled,
    SubscriptionStatusChanged,
    UnrecognizedEvent,
    WebhookEvent,
)

logger = logging.getLogger(__name__)

# Outcomes returned by reconcile(); used for logging and tests
SAVED = "saved"
DUPLICATE = "duplicate"
UPDATED = "updated"
SKIPPED = "skipped"
USER_NOT_FOUND = "user_not_found"
NOT_FOUND = "not_found"
IGNORED = "ignored"


def handle_checkout_completed(db: Session, event: CheckoutCompleted) -> str:
    plan_type = plan_for_product(event.product_id)

    user = purchases.find_user_by_email(db, event.email)
    if not user:
        logger.warning("[Dodo webhook] User not found for checkout email: %s", event.email)
        return USER_NOT_FOUND

    created = purchases.insert_purchase_if_absent(
        db,
        {
            "user_id": user.id,
            "dodo_session_id": event.session_id,
            "product_id": event.product_id,
            "amount": event.amount,
            "currency": event.currency,
            "status": PurchaseStatus.COMPLETED,
            "plan_type": plan_type,
            "payment_data": event.data,
        },
    )
    if not created:
        logger.info("[Dodo webhook] Checkout %s already recorded, ignoring redelivery", event.session_id)
        return DUPLICATE
    logger.info("[Dodo webhook] Purchase saved for user %s (plan=%s)", user.id, plan_type)
    return SAVED


def handle_subscription_activated(db: Session, event: SubscriptionActivated) -> str:
    user = purchases.find_user_by_email(db, event.email)
    if not user:
        logger.warning("[Dodo webhook] User not found for subscription email: %s", event.email)
        return USER_NOT_FOUND

    purchases.upsert_purchase(
        db,
        {
            "user_id": user.id,
            "dodo_session_id": event.subscription_id,
            "product_id": event.product_id,
            "amount": event.amount,
            "currency": event.currency,
            "status": PurchaseStatus.ACTIVE,
            "plan_type": SUBSCRIPTION_PLAN,
            "payment_data": event.data,
        },
        update_fields=("product_id", "amount", "currency", "status", "plan_type", "payment_data"),
    )
    logger.info(
        "[Dodo webhook] Subscription %s active for user %s (%s)",
        event.subscription_id,
        user.id,
        event.event_type,
    )
    return SAVED


def handle_subscription_cancelled(db: Session, event: SubscriptionCancelled) -> str:
    user = purchases.find_user_by_email(db, event.email)
    if not user:
        logger.warning("[Dodo webhook] User not found for cancellation email: %s", event.email)
        return USER_NOT_FOUND

    purchase = purchases.get_purchase(db, event.subscription_id, user_id=user.id)
    if not purchase:
        logger.warning(
            "[Dodo webhook] No subscription %s for user %s, ignoring cancellation",
            event.subscription_id,
            user.id,
        )
        return NOT_FOUND

    # Keep the latest payload so cancelled_at / next_billing_date stay readable
    purchases.update_purchase(db, purchase, PurchaseStatus.CANCELLED, event.data)
    logger.info("[Dodo webhook] Subscription %s cancelled for user %s", event.subscription_id, user.id)
    return UPDATED


def handle_status_changed(db: Session, event: SubscriptionStatusChanged) -> str:
    purchase = purchases.get_purchase(db, event.subscription_id)
    if not purchase:
        logger.warning(
            "[Dodo webhook] %s for unknown subscription %s, ignoring",
            event.event_type,
            event.subscription_id,
        )
        return NOT_FOUND

    purchases.update_purchase(db, purchase, event.status, event.data)
    logger.info("[Dodo webhook] Subscription %s -> %s", event.subscription_id, event.status)
    return UPDATED


def reconcile(db: Session, event: WebhookEvent) -> str:
    """Apply one event to the purchases table and report what happened."""
    if isinstance(event, CheckoutCompleted):
        return handle_checkout_completed(db, event)
    if isinstance(event, RecurringPaymentNotice):
        logger.info("[Dodo webhook] Skipping Payment payload; subscription payments reconcile via subscription events")
        return SKIPPED
    if isinstance(event, SubscriptionActivated):
        return handle_subscription_activated(db, event)
    if isinstance(event, SubscriptionCancelled):
        return handle_subscription_cancelled(db, event)
    if isinstance(event, SubscriptionStatusChanged):
        return handle_status_changed(db, event)
    if isinstance(event, UnrecognizedEvent):
        logger.info("[Dodo webhook] Unhandled webhook event: %s", event.event_type)
        return IGNORED
    raise TypeError(f"Unsupported webhook event: {type(event).__name__}")
