"""
User-initiated subscription cancellation.

The provider is updated first; the local row only changes after Dodo confirms, so a
provider failure leaves our state exactly as it was.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.errors import InvalidInput, NotFound, ProviderError
from app.db.session import get_db
from app.dependencies.auth import get_current_user_id
from app.dependencies.dodo import get_dodo_client
from app.models.purchase import PurchaseStatus
from app.schemas.billing import CancelSubscriptionRequest
from app.services import purchases
from app.services.dodo_client import DodoClient

logger = logging.getLogger(__name__)

router = APIRouter()


def cancellation_changes(cancel_immediately: bool) -> dict:
    """PATCH body for Dodo: end now, or keep access until the paid period ends."""
    if cancel_immediately:
        return {"status": "cancelled"}
    return {"cancel_at_next_billing_date": True}


@router.post("/cancel")
async def cancel_subscription(
    body: CancelSubscriptionRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    dodo: DodoClient = Depends(get_dodo_client),
):
    if not body.subscription_id:
        raise InvalidInput("Subscription ID is required")

    # Someone else's subscription looks exactly like a missing one
    subscription = purchases.get_purchase(db, body.subscription_id, user_id=user_id)
    if not subscription:
        raise NotFound("Subscription not found")

    try:
        logger.info("[Dodo] Cancelling subscription %s (immediate=%s)", body.subscription_id, body.cancel_immediately)
        await dodo.update_subscription(body.subscription_id, cancellation_changes(body.cancel_immediately))
        updated = await dodo.retrieve_subscription(body.subscription_id)
    except ProviderError as e:
        logger.error("[Dodo] Error calling Dodo API for cancellation: %s", e)
        raise ProviderError("Failed to cancel subscription with payment provider") from e

    # Scheduled cancellation leaves the status alone; only the payload records it
    new_status = PurchaseStatus.CANCELLED if body.cancel_immediately else subscription.status
    purchases.update_purchase(db, subscription, new_status, updated)
    logger.info("[Dodo] Subscription %s cancellation recorded (status=%s)", body.subscription_id, new_status)

    return {"message": "Subscription cancelled successfully"}
