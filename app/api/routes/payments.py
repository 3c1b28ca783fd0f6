"""
Hosted checkout creation for one-time plan purchases.
The client posts a whitelisted product id; Dodo hosts the payment page and reports back via webhooks.
"""
import logging
import math
import time

from fastapi import APIRouter, Depends

from app.core import config
from app.core.errors import InvalidInput, InvalidProduct, ProviderError, StaleRequest
from app.core.plans import is_valid_product, plan_for_product
from app.dependencies.dodo import get_dodo_client
from app.dependencies.rate_limit import checkout_rate_limit
from app.schemas.billing import CheckoutResponse, CreateCheckoutRequest
from app.services.dodo_client import DodoClient

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_fresh(timestamp, now_ms: float) -> None:
    # Basic CSRF/timing protection: the request must have been built recently
    if timestamp is None or not math.isfinite(timestamp):
        raise InvalidInput("Invalid request")
    if now_ms - timestamp > config.CHECKOUT_MAX_AGE_SECONDS * 1000:
        raise StaleRequest()


def _check_url(url, label: str) -> None:
    if url is not None and not url.startswith("http"):
        raise InvalidInput(f"Invalid {label} URL")


def validate_checkout_request(body: CreateCheckoutRequest, now_ms: float | None = None) -> None:
    """Raise InvalidInput / StaleRequest / InvalidProduct for anything we will not send to Dodo."""
    _check_fresh(body.timestamp, time.time() * 1000 if now_ms is None else now_ms)
    if not body.product_id:
        raise InvalidInput("Valid productId is required")
    if not is_valid_product(body.product_id):
        raise InvalidProduct()
    _check_url(body.success_url, "success")
    _check_url(body.cancel_url, "cancel")


@router.post(
    "/create-checkout",
    response_model=CheckoutResponse,
    dependencies=[Depends(checkout_rate_limit)],
)
async def create_checkout(
    body: CreateCheckoutRequest,
    dodo: DodoClient = Depends(get_dodo_client),
):
    """Create a Dodo checkout session for exactly one unit of the selected plan."""
    validate_checkout_request(body)

    return_url = body.success_url or f"{config.FRONTEND_URL}/success"
    logger.info("[Dodo] Creating checkout (plan=%s)", plan_for_product(body.product_id))
    try:
        session = await dodo.create_checkout_session(body.product_id, return_url)
    except ProviderError as e:
        logger.error("[Dodo] Payment creation error: %s", e)
        raise ProviderError("Failed to create checkout session") from e

    checkout_url = session.get("checkout_url")
    if not checkout_url:
        logger.error("[Dodo] Missing checkout_url in response (keys=%s)", list(session.keys()))
        raise ProviderError("Failed to create checkout session")
    return {"url": checkout_url}
