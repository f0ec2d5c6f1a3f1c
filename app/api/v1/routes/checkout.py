import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_gateway, http_error
from app.core.dates import stay_window
from app.models.houseboat import HouseboatModel
from app.models.payment_event import PaymentEvent
from app.schemas.checkout import CheckoutIntent, CheckoutRequest
from app.services.availability_service import find_available_unit
from app.services.errors import NoAvailabilityError
from app.services.pricing_service import quote_stay
from app.services.stripe_gateway import PaymentGatewayError, StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["checkout"])


@router.post("/checkout")
def create_checkout(body: CheckoutRequest, db: Session = Depends(get_db), gateway: StripeGateway = Depends(get_gateway)):
    """Price, pick a boat and open a payment session. No booking row is written here."""
    try:
        q = quote_stay(
            db, body.modelId, body.checkIn, body.checkOut,
            guests=body.guests,
            extras=[e.model_dump() for e in body.extras],
        )
        start, end = stay_window(body.checkIn, body.checkOut, body.checkInTime)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    found = find_available_unit(db, body.modelId, start, end)
    if not found.available:
        raise http_error(NoAvailabilityError())

    amount_due = q.deposit if body.paymentOption == "deposit" else q.total
    billing = body.billing
    intent = CheckoutIntent(
        boat_id=found.unit_id,
        model_id=body.modelId,
        client_name=body.client.name,
        client_email=str(body.client.email).lower(),
        client_phone=body.client.phone,
        start_time=start,
        end_time=end,
        guests=body.guests,
        total_price=q.total,
        deposit_amount=q.deposit,
        amount_due=amount_due,
        payment_option=body.paymentOption,
        discount=q.discount,
        extras=[[line.id, line.quantity] for line in q.extras],
        billing_nif=billing.nif if billing else None,
        billing_name=billing.name if billing else None,
        billing_address=billing.address if billing else None,
    )
    model = db.get(HouseboatModel, body.modelId)
    try:
        session = gateway.create_checkout_session(intent, amount_due, product_name=model.name)
    except PaymentGatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("checkout session %s opened for boat %s (%s due)", session.session_id, found.unit_id, amount_due)
    return {
        "sessionId": session.session_id,
        "url": session.redirect_url,
        "boatId": found.unit_id,
        "totalPrice": float(q.total),
        "depositAmount": float(q.deposit),
        "amountDue": float(amount_due),
        "breakdown": q.to_dict(),
    }


@router.get("/checkout/verify-session")
def verify_session(session_id: str, db: Session = Depends(get_db), gateway: StripeGateway = Depends(get_gateway)):
    """Success-page check. A paid session is reported as paid even before the webhook lands."""
    try:
        session = gateway.retrieve_session(session_id)
    except PaymentGatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))

    booking_id = None
    try:
        ev = db.query(PaymentEvent).filter(PaymentEvent.session_id == session_id).first()
        booking_id = ev.booking_id if ev else None
    except SQLAlchemyError:
        logger.exception("booking lookup failed for session %s", session_id)
    return {
        "paid": session.get("payment_status") == "paid",
        "status": session.get("status"),
        "bookingId": booking_id,
        "customerEmail": (session.get("customer_details") or {}).get("email") or session.get("customer_email"),
    }
