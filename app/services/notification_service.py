"""Customer and finance notifications.

Every function here is best-effort: failures are logged and reported as
False, never raised, so a mail problem cannot undo a booking or a payment.
"""
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.dates import local_date
from app.models.booking import Booking
from app.services.email_service import queue_email

logger = logging.getLogger(__name__)


def _money(value) -> str:
    return f"€{Decimal(value or 0):.2f}"


def _stay(b: Booking) -> str:
    return f"{local_date(b.start_time).isoformat()} to {local_date(b.end_time).isoformat()}"


def _send(db: Session, to_email: str, subject: str, body: str, booking_id: str, template: str) -> bool:
    if not to_email:
        return False
    try:
        queue_email(db, to_email, subject, body, related_booking_id=booking_id, template=template)
        return True
    except Exception:
        db.rollback()
        logger.exception("could not queue %s email for booking %s", template, booking_id)
        return False


def send_payment_receipt(db: Session, b: Booking, amount: Decimal) -> bool:
    remaining = Decimal(b.total_price or 0) - Decimal(b.amount_paid or 0)
    body = (
        f"Dear {b.client_name},\n\n"
        f"We received your payment of {_money(amount)} for booking {b.id} ({_stay(b)}).\n\n"
        f"Total: {_money(b.total_price)}\n"
        f"Paid so far: {_money(b.amount_paid)}\n"
        f"Remaining: {_money(max(remaining, Decimal('0')))}\n\n"
        "Thank you for booking with us.\n"
    )
    return _send(db, b.client_email, f"Payment received - booking {b.id[:8]}", body, b.id, "receipt")


def send_finance_invoice_request(db: Session, b: Booking) -> bool:
    if not settings.FINANCE_EMAIL:
        logger.info("FINANCE_EMAIL not set; skipping invoice request for %s", b.id)
        return False
    body = (
        f"Booking {b.id} is fully paid. Please issue the invoice.\n\n"
        f"Client: {b.client_name} <{b.client_email}>\n"
        f"Stay: {_stay(b)}\n"
        f"Total paid: {_money(b.amount_paid)}\n"
        f"NIF: {b.billing_nif or '-'}\n"
        f"Billing name: {b.billing_name or b.client_name}\n"
        f"Billing address: {b.billing_address or '-'}\n"
    )
    return _send(db, settings.FINANCE_EMAIL, f"Invoice request - booking {b.id[:8]}", body, b.id, "finance_invoice")


def send_payment_link(db: Session, b: Booking, to_email: str, link: str, amount: Decimal) -> bool:
    body = (
        f"Dear {b.client_name},\n\n"
        f"Please use the link below to pay {_money(amount)} towards your booking ({_stay(b)}).\n\n"
        f"{link}\n\n"
        f"The link is valid for {settings.PAYMENT_LINK_TTL_HOURS} hours and can be used once.\n"
    )
    return _send(db, to_email, "Payment link for your booking", body, b.id, "payment_link")


def send_status_update(db: Session, b: Booking) -> bool:
    body = (
        f"Dear {b.client_name},\n\n"
        f"The status of your booking {b.id} ({_stay(b)}) is now: {b.status}.\n"
    )
    return _send(db, b.client_email, f"Booking {b.status.lower()}", body, b.id, "status_update")
