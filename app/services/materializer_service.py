"""Turn a confirmed checkout session into a durable booking.

One call per verified `checkout.session.completed` (or async success) event.
The idempotency row, the booking insert/update, the amount increment and the
token consumption commit together, so a redelivered event either finds the
committed row and stops, or finds nothing and replays from scratch. The
ledger transaction row joins the same commit when it can; if writing it
fails, the commit is retried without it and the row is written again in its
own transaction afterwards. Both steps are audited.
Notifications go out after commit and never affect the stored result.
"""
import logging
import uuid
from dataclasses import dataclass, replace
from decimal import Decimal

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.dates import utcnow
from app.models.booking import Booking, BookingStatus, PaymentStatus
from app.models.extra import Extra
from app.models.payment import PaymentTransaction
from app.models.payment_event import PaymentEvent
from app.schemas.checkout import CheckoutIntent, PaymentLinkIntent, intent_from_metadata
from app.services import notification_service
from app.services.audit_service import log_audit
from app.services.availability_service import find_available_unit, lock_unit, unit_is_free
from app.services.errors import NotFoundError
from app.services.payment_link_service import consume_token
from app.services.reconciliation_service import FULLY_PAID_TOLERANCE, derive_payment_status, reconcile_booking
from app.services.stripe_gateway import from_minor_units

logger = logging.getLogger(__name__)

ACTOR = "stripe"
HANDLED_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")


@dataclass(frozen=True)
class MaterializationResult:
    booking_id: str
    created: bool
    duplicate: bool
    amount: Decimal
    is_fully_paid: bool
    settled_now: bool = False
    ledger_recorded: bool = True
    overbooked: bool = False


class _LedgerWriteFailed(Exception):
    pass


def is_payable_event(event: dict) -> bool:
    if event.get("type") not in HANDLED_EVENTS:
        return False
    session = event.get("data", {}).get("object", {})
    # completed fires before settlement for delayed methods; async_payment_succeeded follows
    return session.get("payment_status") in ("paid", "no_payment_required")


def _already_processed(db: Session, session_id: str, event_id: str | None) -> PaymentEvent | None:
    conds = [PaymentEvent.session_id == session_id]
    if event_id:
        conds.append(PaymentEvent.provider_event_id == event_id)
    return db.query(PaymentEvent).filter(or_(*conds)).first()


def _record_ledger_entry(db: Session, booking_id: str, amount: Decimal, session: dict, event_id: str) -> PaymentTransaction:
    tx = PaymentTransaction(
        id=str(uuid.uuid4()),
        booking_id=booking_id,
        amount=amount,
        status="paid",
        method="stripe",
        provider_ref=session.get("payment_intent") or session["id"],
        details={"source": "stripe_checkout", "session_id": session["id"], "event_id": event_id},
    )
    db.add(tx)
    try:
        db.flush()
    except SQLAlchemyError as e:
        raise _LedgerWriteFailed(str(e)) from e
    return tx


def _selected_extras(db: Session, pairs: list) -> list[dict]:
    out = []
    for extra_id, quantity in pairs:
        extra = db.get(Extra, extra_id)
        out.append({
            "id": extra_id,
            "name": extra.name if extra else "",
            "price": float(extra.price) if extra else 0.0,
            "quantity": int(quantity),
        })
    return out


def _insert_booking(db: Session, intent: CheckoutIntent) -> tuple[Booking, bool]:
    """Create the self-service booking; returns (booking, overbooked)."""
    unit_id = intent.boat_id
    overbooked = False
    lock_unit(db, unit_id)
    if not unit_is_free(db, unit_id, intent.start_time, intent.end_time):
        alt = find_available_unit(db, intent.model_id, intent.start_time, intent.end_time, exclude_unit_ids=(unit_id,))
        if alt.available:
            logger.info("boat %s taken since checkout; reassigned to %s", unit_id, alt.unit_id)
            unit_id = alt.unit_id
            lock_unit(db, unit_id)
        else:
            overbooked = True
            logger.warning("overbooking: boat %s already reserved %s-%s, manual action needed",
                           unit_id, intent.start_time, intent.end_time)

    notes = "Online booking"
    if overbooked:
        notes += "\nOVERBOOKED: the assigned boat has an overlapping reservation; reassign manually."
    booking = Booking(
        id=str(uuid.uuid4()),
        houseboat_id=unit_id,
        client_name=intent.client_name,
        client_email=intent.client_email,
        client_phone=intent.client_phone,
        start_time=intent.start_time,
        end_time=intent.end_time,
        number_of_guests=intent.guests,
        total_price=intent.total_price,
        amount_paid=Decimal("0"),
        discount=intent.discount,
        status=BookingStatus.CONFIRMED.value,
        payment_status=PaymentStatus.UNPAID.value,
        source="website",
        notes=notes,
        selected_extras=_selected_extras(db, intent.extras),
        billing_nif=intent.billing_nif,
        billing_name=intent.billing_name,
        billing_address=intent.billing_address,
    )
    db.add(booking)
    db.flush()
    if overbooked:
        log_audit(db, ACTOR, "booking.overbooking_detected", "booking", booking.id, {"boat_id": unit_id})
    return booking, overbooked


def _apply(db: Session, event: dict, intent, amount: Decimal, *, with_ledger: bool) -> MaterializationResult:
    session = event["data"]["object"]
    event_id = event.get("id")
    created, overbooked = False, False

    if isinstance(intent, PaymentLinkIntent):
        booking = db.get(Booking, intent.booking_id)
        if not booking:
            raise NotFoundError(f"booking {intent.booking_id} not found")
        token_id = intent.token_id
    else:
        booking, overbooked = _insert_booking(db, intent)
        created = True
        token_id = None

    db.add(PaymentEvent(
        id=str(uuid.uuid4()),
        session_id=session["id"],
        provider_event_id=event_id,
        event_type=event.get("type", ""),
        source="webhook",
        booking_id=booking.id,
        token_id=token_id,
        amount=amount,
    ))
    db.flush()  # a concurrent delivery fails here on the unique session id

    previous = Decimal(booking.amount_paid or 0)
    was_fully_paid = booking.payment_status == PaymentStatus.FULLY_PAID.value
    ledger = False
    if with_ledger:
        _record_ledger_entry(db, booking.id, amount, session, event_id)
        reconcile_booking(db, booking.id, commit=False)
        ledger = True
    else:
        booking.amount_paid = previous + amount
        booking.payment_status = derive_payment_status(booking.amount_paid, booking.total_price)

    is_fully_paid = Decimal(booking.amount_paid) >= Decimal(booking.total_price) - FULLY_PAID_TOLERANCE
    if booking.status == BookingStatus.PENDING.value or is_fully_paid:
        booking.status = BookingStatus.CONFIRMED.value

    if token_id and not consume_token(db, token_id, utcnow()):
        # money has moved either way; keep the payment, just note the reuse
        logger.warning("token %s already consumed when session %s completed", token_id, session["id"])

    log_audit(db, ACTOR, "booking.materialized" if created else "booking.payment_received", "booking", booking.id, {
        "session_id": session["id"],
        "event_id": event_id,
        "amount": amount,
        "amount_paid": booking.amount_paid,
        "ledger": ledger,
    })
    if not ledger:
        log_audit(db, ACTOR, "payment.ledger_write_failed", "booking", booking.id, {"session_id": session["id"], "amount": amount})
    db.commit()
    return MaterializationResult(
        booking_id=booking.id,
        created=created,
        duplicate=False,
        amount=amount,
        is_fully_paid=is_fully_paid,
        settled_now=is_fully_paid and not was_fully_paid,
        ledger_recorded=ledger,
        overbooked=overbooked,
    )


def _duplicate(existing: PaymentEvent) -> MaterializationResult:
    return MaterializationResult(
        booking_id=existing.booking_id,
        created=False,
        duplicate=True,
        amount=Decimal(existing.amount),
        is_fully_paid=False,
    )


def _backfill_ledger(db: Session, result: MaterializationResult, session: dict, event_id: str | None) -> MaterializationResult:
    """Write the missing ledger row in its own transaction once the booking is committed."""
    try:
        _record_ledger_entry(db, result.booking_id, result.amount, session, event_id)
        log_audit(db, ACTOR, "payment.ledger_backfilled", "booking", result.booking_id, {"session_id": session["id"]})
        db.commit()
    except (_LedgerWriteFailed, SQLAlchemyError):
        db.rollback()
        logger.exception("ledger backfill failed for session %s; booking %s needs a manual ledger entry",
                         session["id"], result.booking_id)
        return result
    return replace(result, ledger_recorded=True)


def materialize_checkout(db: Session, event: dict, *, notify: bool = True) -> MaterializationResult:
    """Apply a verified checkout event. Raises ValueError on unusable metadata."""
    session = event["data"]["object"]
    session_id = session["id"]
    event_id = event.get("id")

    existing = _already_processed(db, session_id, event_id)
    if existing:
        logger.info("checkout session %s already processed (event %s)", session_id, event_id)
        return _duplicate(existing)

    intent = intent_from_metadata(session.get("metadata") or {})
    amount = from_minor_units(session.get("amount_total"))
    if amount <= 0:
        raise ValueError(f"session {session_id} has no charged amount")

    try:
        result = _apply(db, event, intent, amount, with_ledger=True)
    except _LedgerWriteFailed:
        db.rollback()
        logger.exception("ledger write failed for session %s; confirming booking without it", session_id)
        result = None
    except IntegrityError:
        db.rollback()
        existing = _already_processed(db, session_id, event_id)
        if existing:
            logger.info("checkout session %s processed concurrently", session_id)
            return _duplicate(existing)
        logger.exception("ledger write failed for session %s; confirming booking without it", session_id)
        result = None

    if result is None:
        try:
            result = _apply(db, event, intent, amount, with_ledger=False)
        except IntegrityError:
            db.rollback()
            existing = _already_processed(db, session_id, event_id)
            if existing:
                return _duplicate(existing)
            raise
        result = _backfill_ledger(db, result, session, event_id)

    logger.info("session %s materialized into booking %s (created=%s, paid=%s, fully=%s)",
                session_id, result.booking_id, result.created, amount, result.is_fully_paid)
    if notify:
        _notify(db, result)
    return result


def _notify(db: Session, result: MaterializationResult) -> None:
    booking = db.get(Booking, result.booking_id)
    if not booking:
        return
    notification_service.send_payment_receipt(db, booking, result.amount)
    if result.settled_now:
        notification_service.send_finance_invoice_request(db, booking)
