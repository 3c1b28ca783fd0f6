"""
Normalize verified Dodo webhook payloads into one event class per kind.

Field names differ between event subtypes (`subscription.created` vs `.active`,
"Payment" vs checkout payloads); each parser deals with that here so the
reconciler only ever sees canonical records.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

from app.models.purchase import PurchaseStatus


class EventPayloadError(ValueError):
    """A known event type arrived without a field it cannot be reconciled without."""


@dataclass
class CheckoutCompleted:
    session_id: str
    email: Optional[str]
    product_id: str
    amount: Optional[int]
    currency: str
    data: dict = field(repr=False)


@dataclass
class RecurringPaymentNotice:
    """checkout.session.completed carrying a Payment payload; renewals are handled via subscription events."""
    data: dict = field(repr=False)


@dataclass
class SubscriptionActivated:
    event_type: str
    subscription_id: str
    product_id: str
    amount: Optional[int]
    currency: str
    email: Optional[str]
    data: dict = field(repr=False)


@dataclass
class SubscriptionCancelled:
    subscription_id: str
    email: Optional[str]
    data: dict = field(repr=False)


@dataclass
class SubscriptionStatusChanged:
    event_type: str
    subscription_id: str
    status: str
    data: dict = field(repr=False)


@dataclass
class UnrecognizedEvent:
    event_type: Optional[str]
    data: dict = field(repr=False)


WebhookEvent = Union[
    CheckoutCompleted,
    RecurringPaymentNotice,
    SubscriptionActivated,
    SubscriptionCancelled,
    SubscriptionStatusChanged,
    UnrecognizedEvent,
]

# Lifecycle events that only move an existing row to a new status
STATUS_EVENTS: Dict[str, str] = {
    "subscription.renewed": PurchaseStatus.ACTIVE,
    "subscription.on_hold": PurchaseStatus.ON_HOLD,
    "subscription.failed": PurchaseStatus.FAILED,
    "subscription.expired": PurchaseStatus.EXPIRED,
}


def _customer_email(data: dict) -> Optional[str]:
    customer = data.get("customer") or {}
    email = customer.get("email") if isinstance(customer, dict) else None
    return email.strip().lower() if email else None


def _subscription_id(data: dict) -> Optional[str]:
    sub_id = data.get("subscription_id") or data.get("id")
    return str(sub_id) if sub_id else None


def _currency(data: dict) -> str:
    return (data.get("currency") or "usd").lower()


def _parse_checkout_completed(event_type: str, data: dict) -> WebhookEvent:
    if data.get("payload_type") == "Payment":
        return RecurringPaymentNotice(data=data)

    session_id = data.get("id") or data.get("session_id") or data.get("checkout_session_id")
    cart = data.get("product_cart") or []
    product_id = cart[0].get("product_id") if cart and isinstance(cart[0], dict) else None
    if not session_id:
        raise EventPayloadError("checkout.session.completed without session id")
    if not product_id:
        raise EventPayloadError("checkout.session.completed without product_id")
    return CheckoutCompleted(
        session_id=str(session_id),
        email=_customer_email(data),
        product_id=product_id,
        amount=data.get("amount_total", data.get("total_amount")),
        currency=_currency(data),
        data=data,
    )


def _parse_subscription_activated(event_type: str, data: dict) -> WebhookEvent:
    subscription_id = _subscription_id(data)
    product_id = data.get("product_id")
    if not subscription_id or not product_id:
        raise EventPayloadError(f"{event_type} without subscription_id or product_id")
    amount = data.get("recurring_pre_tax_amount")
    if amount is None:
        amount = data.get("amount_total")
    return SubscriptionActivated(
        event_type=event_type,
        subscription_id=subscription_id,
        product_id=product_id,
        amount=amount,
        currency=_currency(data),
        email=_customer_email(data),
        data=data,
    )


def _parse_subscription_cancelled(event_type: str, data: dict) -> WebhookEvent:
    subscription_id = _subscription_id(data)
    if not subscription_id:
        raise EventPayloadError("subscription.cancelled without subscription id")
    return SubscriptionCancelled(
        subscription_id=subscription_id,
        email=_customer_email(data),
        data=data,
    )


def _parse_status_change(event_type: str, data: dict) -> WebhookEvent:
    subscription_id = _subscription_id(data)
    if not subscription_id:
        raise EventPayloadError(f"{event_type} without subscription id")
    return SubscriptionStatusChanged(
        event_type=event_type,
        subscription_id=subscription_id,
        status=STATUS_EVENTS[event_type],
        data=data,
    )


PARSERS: Dict[str, Callable[[str, dict], WebhookEvent]] = {
    "checkout.session.completed": _parse_checkout_completed,
    # Both map to the same idempotent activation; `.created` may or may not precede `.active`
    "subscription.created": _parse_subscription_activated,
    "subscription.active": _parse_subscription_activated,
    "subscription.cancelled": _parse_subscription_cancelled,
    **{event_type: _parse_status_change for event_type in STATUS_EVENTS},
}


def parse_event(raw: dict) -> WebhookEvent:
    """Turn a verified `{"type": ..., "data": {...}}` payload into a typed event."""
    event_type = raw.get("type")
    data = raw.get("data") or {}
    if not isinstance(data, dict):
        raise EventPayloadError(f"{event_type} data is not an object")

    parser = PARSERS.get(event_type) if isinstance(event_type, str) else None
    if parser is None:
        return UnrecognizedEvent(event_type=event_type, data=data)
    return parser(event_type, data)
