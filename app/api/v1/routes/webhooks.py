import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_gateway
from app.services.audit_service import log_audit
from app.services.errors import NotFoundError
from app.services.materializer_service import is_payable_event, materialize_checkout
from app.services.stripe_gateway import SignatureInvalid, StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhooks/payment-provider")
@router.post("/webhooks/stripe")
async def payment_webhook(req: Request, db: Session = Depends(get_db), gateway: StripeGateway = Depends(get_gateway)):
    body = await req.body()
    try:
        event = gateway.verify_webhook(body, req.headers.get("stripe-signature"))
    except SignatureInvalid as e:
        raise HTTPException(status_code=400, detail=f"Invalid signature: {e}")

    event_type = event.get("type", "")
    logger.info("webhook %s (%s) received", event.get("id"), event_type)
    if not is_payable_event(event):
        return {"received": True, "handled": False}

    session_id = event["data"]["object"].get("id", "")
    try:
        result = materialize_checkout(db, event)
    except (ValueError, NotFoundError) as e:
        # redelivery cannot repair the payload; keep a trace and acknowledge
        db.rollback()
        logger.error("unusable checkout session %s: %s", session_id, e)
        log_audit(db, "stripe", "webhook.unprocessable", "checkout_session", session_id[:36], {"error": str(e), "event_id": event.get("id")})
        db.commit()
        return {"received": True, "handled": False, "error": str(e)}

    return {
        "received": True,
        "handled": True,
        "duplicate": result.duplicate,
        "bookingId": result.booking_id,
    }
