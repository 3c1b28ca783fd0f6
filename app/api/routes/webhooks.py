"""
Dodo Payments webhook receiver. Register this URL in the Dodo dashboard:
https://your-backend.com/api/webhooks/dodo

The body is read raw; signatures are bound to the exact bytes Dodo sent.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core import config
from app.db.session import get_db
from app.services.reconciler import reconcile
from app.services.webhook_events import EventPayloadError, parse_event
from app.services.webhook_verifier import verify_webhook

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/dodo")
async def dodo_webhook(request: Request, db: Session = Depends(get_db)):
    body = await request.body()

    # Verification and config errors propagate (401 / 500) so Dodo keeps the event pending
    raw_event = verify_webhook(body, request.headers, config.DODO_WEBHOOK_SECRET)
    event_type = raw_event.get("type")
    logger.info("[Dodo webhook] Verified event type=%s", event_type)

    # Past this point Dodo always gets an acknowledgement; failures are ours to investigate
    try:
        event = parse_event(raw_event)
        outcome = reconcile(db, event)
        logger.info("[Dodo webhook] type=%s outcome=%s", event_type, outcome)
    except EventPayloadError as e:
        logger.warning("[Dodo webhook] Malformed %s payload: %s", event_type, e)
    except Exception:
        db.rollback()
        logger.exception("[Dodo webhook] Processing failed for type=%s", event_type)

    return {"received": True}
