import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_gateway, http_error, require_staff
from app.api.v1.routes.bookings import booking_dict, transaction_dict
from app.models.booking import Booking
from app.models.payment_event import PaymentEvent
from app.models.user import User
from app.schemas.checkout import PaymentLinkIntent
from app.schemas.payments import (
    LinkCheckoutRequest,
    LinkGenerateRequest,
    LinkProcessRequest,
    TransactionCreate,
    TransactionUpdate,
)
from app.services import notification_service, payment_link_service, transaction_service
from app.services.errors import ServiceError, TokenAlreadyUsed
from app.services.stripe_gateway import PaymentGatewayError, StripeGateway, from_minor_units

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


# Manual ledger (staff)

@router.get("/payments")
def list_payments(bookingId: str | None = None, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    return [transaction_dict(t) for t in transaction_service.list_transactions(db, bookingId)]


@router.post("/payments")
def create_payment(body: TransactionCreate, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    try:
        tx, booking = transaction_service.add_transaction(db, body, actor=user.id)
    except ServiceError as e:
        raise http_error(e)
    return {"payment": transaction_dict(tx), "booking": booking_dict(booking)}


@router.put("/payments/{payment_id}")
def update_payment(payment_id: str, body: TransactionUpdate, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    try:
        tx, booking = transaction_service.update_transaction(db, payment_id, body, actor=user.id)
    except ServiceError as e:
        raise http_error(e)
    return {"payment": transaction_dict(tx), "booking": booking_dict(booking)}


@router.delete("/payments/{payment_id}")
def delete_payment(payment_id: str, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    try:
        booking = transaction_service.delete_transaction(db, payment_id, actor=user.id)
    except ServiceError as e:
        raise http_error(e)
    return {"ok": True, "booking": booking_dict(booking)}


# Payment links

@router.post("/payments/link/generate")
def generate_link(body: LinkGenerateRequest, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    try:
        tok = payment_link_service.generate_link(db, body.bookingId, actor=user.id, amount=body.amount)
    except ServiceError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    link = payment_link_service.link_url(tok.token)
    email_sent = False
    if not body.skipEmail:
        booking = db.get(Booking, tok.booking_id)
        to_email = body.email or booking.client_email
        email_sent = notification_service.send_payment_link(db, booking, to_email, link, tok.requested_amount)
        if email_sent:
            booking.email_sent = True
            db.commit()
    return {
        "token": tok.token,
        "link": link,
        "amount": float(tok.requested_amount),
        "expiresAt": tok.expires_at.isoformat(),
        "emailSent": email_sent,
    }


@router.get("/payments/link/validate")
def validate_link(token: str, db: Session = Depends(get_db)):
    try:
        q = payment_link_service.validate_token(db, token)
    except ServiceError as e:
        raise http_error(e)
    b = q.booking
    return {
        "valid": True,
        "bookingId": b.id,
        "clientName": b.client_name,
        "clientEmail": b.client_email,
        "startTime": b.start_time.isoformat(),
        "endTime": b.end_time.isoformat(),
        "totalPrice": float(b.total_price),
        "amountPaid": float(b.amount_paid or 0),
        "remaining": float(q.remaining),
        "amountDue": float(q.amount_due),
        "currency": "EUR",
        "expiresAt": q.token.expires_at.isoformat(),
    }


@router.post("/payments/link/checkout")
def link_checkout(body: LinkCheckoutRequest, db: Session = Depends(get_db), gateway: StripeGateway = Depends(get_gateway)):
    try:
        q = payment_link_service.validate_token(db, body.token)
    except ServiceError as e:
        raise http_error(e)
    b = q.booking
    if body.billing:
        for field in ("nif", "name", "address"):
            value = getattr(body.billing, field)
            if value:
                setattr(b, f"billing_{field}", value)
        db.commit()

    intent = PaymentLinkIntent(booking_id=b.id, token_id=q.token.id, amount_due=q.amount_due)
    try:
        session = gateway.create_link_checkout_session(
            intent, body.token,
            customer_email=b.client_email or None,
            description=f"Booking {b.id[:8]} for {b.client_name}",
        )
    except PaymentGatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"sessionId": session.session_id, "url": session.redirect_url, "amountDue": float(q.amount_due)}


def _already_processed(db: Session, session_id: str) -> dict | None:
    ev = db.query(PaymentEvent).filter(PaymentEvent.session_id == session_id).first()
    if ev:
        return {"success": True, "alreadyProcessed": True, "bookingId": ev.booking_id}
    return None


@router.post("/payments/link/process")
def process_link(body: LinkProcessRequest, db: Session = Depends(get_db), gateway: StripeGateway = Depends(get_gateway)):
    """Redeem a link once its checkout session is paid. Safe to race the webhook for the same session."""
    done = _already_processed(db, body.sessionId)
    if done:
        return done
    try:
        session = gateway.retrieve_session(body.sessionId)
    except PaymentGatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if session.get("payment_status") != "paid":
        raise HTTPException(status_code=409, detail="Payment has not been completed")

    try:
        q = payment_link_service.validate_token(db, body.token)
    except TokenAlreadyUsed as e:
        done = _already_processed(db, body.sessionId)
        if done:
            return done
        raise http_error(e)
    except ServiceError as e:
        raise http_error(e)
    if (session.get("metadata") or {}).get("token_id") != q.token.id:
        raise HTTPException(status_code=400, detail="Payment session does not belong to this link")

    try:
        r = payment_link_service.redeem_token(
            db, body.token,
            actor="public",
            amount=from_minor_units(session.get("amount_total")),
            method="stripe",
            provider_ref=session.get("payment_intent") or body.sessionId,
            session_id=body.sessionId,
            billing=body.billing.model_dump() if body.billing else None,
        )
    except TokenAlreadyUsed as e:
        done = _already_processed(db, body.sessionId)
        if done:
            return done
        raise http_error(e)
    except ServiceError as e:
        raise http_error(e)

    notification_service.send_payment_receipt(db, r.booking, r.amount)
    if r.settled_now:
        notification_service.send_finance_invoice_request(db, r.booking)
    return {
        "success": True,
        "alreadyProcessed": False,
        "bookingId": r.booking.id,
        "amount": float(r.amount),
        "paymentStatus": r.booking.payment_status,
    }
