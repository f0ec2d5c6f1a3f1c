"""Single-use, time-boxed payment links for settling a booking balance out of band."""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.dates import as_utc, utcnow
from app.core.security import new_payment_token
from app.models.booking import Booking, BookingStatus, PaymentStatus
from app.models.payment import PaymentTransaction
from app.models.payment_event import PaymentEvent
from app.models.payment_token import PaymentToken
from app.services.audit_service import log_audit
from app.services.errors import (
    BookingAlreadySettled,
    NotFoundError,
    TokenAlreadyUsed,
    TokenExpired,
    TokenNotFound,
)
from app.services.pricing_service import compute_deposit
from app.services.reconciliation_service import (
    FULLY_PAID_TOLERANCE,
    reconcile_booking,
    remaining_balance,
)

logger = logging.getLogger(__name__)

SETTLED_EPSILON = Decimal("0.01")


@dataclass(frozen=True)
class TokenQuote:
    token: PaymentToken
    booking: Booking
    remaining: Decimal
    amount_due: Decimal


@dataclass(frozen=True)
class Redemption:
    booking: Booking
    transaction: PaymentTransaction
    amount: Decimal
    is_fully_paid: bool
    settled_now: bool = False


def default_link_amount(booking: Booking) -> Decimal:
    """Deposit if nothing is paid yet, otherwise whatever is left."""
    if Decimal(booking.amount_paid or 0) <= 0:
        return compute_deposit(Decimal(booking.total_price or 0))
    return remaining_balance(booking)


def link_url(token: str) -> str:
    return f"{settings.SITE_BASE_URL.rstrip('/')}/payment/{token}"


def generate_link(db: Session, booking_id: str, *, actor: str, amount: Decimal | None = None, now: datetime | None = None) -> PaymentToken:
    booking = db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    if amount is None:
        amount = default_link_amount(booking)
        if amount <= 0:
            raise BookingAlreadySettled()
    amount = Decimal(amount).quantize(Decimal("0.01"))
    if amount <= 0:
        raise ValueError("amount must be greater than zero")

    now = now or utcnow()
    tok = PaymentToken(
        id=str(uuid.uuid4()),
        token=new_payment_token(),
        booking_id=booking.id,
        requested_amount=amount,
        expires_at=now + timedelta(hours=settings.PAYMENT_LINK_TTL_HOURS),
        created_by=actor,
    )
    db.add(tok)
    log_audit(db, actor, "payment_link.generated", "booking", booking.id, {"token_id": tok.id, "amount": amount})
    db.commit()
    db.refresh(tok)
    logger.info("payment link %s generated for booking %s (%s)", tok.id, booking.id, amount)
    return tok


def _check(db: Session, tok: PaymentToken | None, now: datetime) -> TokenQuote:
    if not tok:
        raise TokenNotFound()
    if now >= as_utc(tok.expires_at):
        raise TokenExpired()
    if tok.used_at is not None:
        raise TokenAlreadyUsed()
    booking = db.get(Booking, tok.booking_id)
    if not booking:
        raise TokenNotFound("Booking for this payment link no longer exists")
    remaining = remaining_balance(booking)
    if remaining <= SETTLED_EPSILON:
        raise BookingAlreadySettled()
    requested = Decimal(tok.requested_amount) if tok.requested_amount is not None else remaining
    return TokenQuote(token=tok, booking=booking, remaining=remaining, amount_due=min(requested, remaining))


def validate_token(db: Session, token: str, *, now: datetime | None = None) -> TokenQuote:
    """Read-only check; the payable amount never exceeds the true remaining balance."""
    tok = db.query(PaymentToken).filter(PaymentToken.token == token).first()
    return _check(db, tok, now or utcnow())


def consume_token(db: Session, token_id: str, now: datetime) -> bool:
    """Compare-and-set on used_at. False when another request already consumed it."""
    result = db.execute(
        update(PaymentToken)
        .where(PaymentToken.id == token_id, PaymentToken.used_at.is_(None))
        .values(used_at=now)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def redeem_token(
    db: Session,
    token: str,
    *,
    actor: str,
    amount: Decimal | None = None,
    method: str = "stripe",
    provider_ref: str = "",
    session_id: str | None = None,
    billing: dict | None = None,
    now: datetime | None = None,
) -> Redemption:
    """Record a payment made through a link, in one transaction.

    `amount` is what was actually charged; it defaults to the payable amount.
    With a `session_id` the redemption also writes the checkout idempotency
    row, so a webhook for the same session is recognised as already handled.
    The token is consumed last; if that compare-and-set loses, everything
    rolls back and the caller sees TokenAlreadyUsed.
    """
    now = now or utcnow()
    tok = db.query(PaymentToken).filter(PaymentToken.token == token).with_for_update().first()
    quote = _check(db, tok, now)
    booking = quote.booking
    charged = Decimal(amount if amount is not None else quote.amount_due).quantize(Decimal("0.01"))
    was_fully_paid = booking.payment_status == PaymentStatus.FULLY_PAID.value
    if charged <= 0:
        raise ValueError("amount must be greater than zero")

    tx = PaymentTransaction(
        id=str(uuid.uuid4()),
        booking_id=booking.id,
        amount=charged,
        status="paid",
        method=method,
        provider_ref=provider_ref,
        details={"source": "payment_link", "token_id": tok.id, "session_id": session_id},
    )
    db.add(tx)
    if session_id:
        db.add(PaymentEvent(
            id=str(uuid.uuid4()),
            session_id=session_id,
            event_type="payment_link.process",
            source="link_process",
            booking_id=booking.id,
            token_id=tok.id,
            amount=charged,
        ))
    try:
        db.flush()
    except IntegrityError:
        # session already recorded by the webhook
        db.rollback()
        raise TokenAlreadyUsed()
    for field in ("nif", "name", "address"):
        if billing and billing.get(field):
            setattr(booking, f"billing_{field}", billing[field])

    reconcile_booking(db, booking.id, commit=False)
    if booking.status in (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value):
        booking.status = BookingStatus.CONFIRMED.value
    is_fully_paid = Decimal(booking.amount_paid) >= Decimal(booking.total_price) - FULLY_PAID_TOLERANCE
    log_audit(db, actor, "payment_link.redeemed", "booking", booking.id, {"token_id": tok.id, "amount": charged, "session_id": session_id})

    if not consume_token(db, tok.id, now):
        db.rollback()
        raise TokenAlreadyUsed()
    db.commit()
    db.refresh(booking)
    db.refresh(tx)
    logger.info("payment link %s redeemed: %s on booking %s", tok.id, charged, booking.id)
    return Redemption(booking=booking, transaction=tx, amount=charged, is_fully_paid=is_fully_paid,
                      settled_now=is_fully_paid and not was_fully_paid)
