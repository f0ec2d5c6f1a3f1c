from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.booking import Booking, BookingStatus, PaymentStatus
from app.models.payment import PaymentTransaction
from app.services.errors import NotFoundError

# Absorbs cent rounding between deposit/balance charges and the stored total.
FULLY_PAID_TOLERANCE = Decimal("0.05")


def derive_payment_status(amount_paid: Decimal, total_price: Decimal) -> str:
    paid = Decimal(amount_paid or 0)
    total = Decimal(total_price or 0)
    if total > 0 and paid >= total - FULLY_PAID_TOLERANCE:
        return PaymentStatus.FULLY_PAID.value
    if total > 0 and paid > 0:
        return PaymentStatus.DEPOSIT_PAID.value
    return PaymentStatus.UNPAID.value


def paid_sum(db: Session, booking_id: str) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(PaymentTransaction.amount), 0))
        .filter(PaymentTransaction.booking_id == booking_id, PaymentTransaction.status == "paid")
        .scalar()
    )
    return Decimal(str(total or 0)).quantize(Decimal("0.01"))


def reconcile_booking(db: Session, booking_id: str, *, commit: bool = True) -> Booking:
    """Recompute amount_paid and payment_status from the paid transactions of a booking.

    A positive balance promotes a Pending booking to Confirmed. Cancelled and
    Maintenance bookings keep their status.
    """
    booking = db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    db.flush()
    total_paid = paid_sum(db, booking_id)
    booking.amount_paid = total_paid
    booking.payment_status = derive_payment_status(total_paid, booking.total_price)
    if total_paid > 0 and booking.status == BookingStatus.PENDING.value:
        booking.status = BookingStatus.CONFIRMED.value
    if commit:
        db.commit()
        db.refresh(booking)
    return booking


def remaining_balance(booking: Booking) -> Decimal:
    return Decimal(booking.total_price or 0) - Decimal(booking.amount_paid or 0)
