import logging
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session

from app.core.dates import as_utc, local_date
from app.models.booking import Booking, BookingStatus
from app.models.houseboat import Boat
from app.models.payment import PaymentTransaction
from app.models.payment_token import PaymentToken
from app.schemas.booking import BookingCreate, BookingUpdate
from app.services.audit_service import log_audit
from app.services.availability_service import lock_unit, unit_is_free
from app.services.errors import ConflictError, NotFoundError
from app.services.pricing_service import quote_stay
from app.services.reconciliation_service import reconcile_booking

logger = logging.getLogger(__name__)


def _ensure_unit_free(db: Session, unit_id: str, start, end, exclude_booking_id: str | None = None) -> Boat:
    boat = lock_unit(db, unit_id)
    if not boat:
        raise NotFoundError("Houseboat not found")
    if not unit_is_free(db, unit_id, start, end, exclude_booking_id):
        raise ConflictError(f"{boat.name} is already booked for these dates")
    return boat


def create_booking(db: Session, data: BookingCreate, *, actor: str) -> Booking:
    """Manual booking entered by staff (phone, walk-in, maintenance block)."""
    start, end = as_utc(data.startTime), as_utc(data.endTime)
    if end <= start:
        raise ValueError("end time must be after start time")

    total = data.price
    extras = [e.model_dump(mode="json") for e in data.selectedExtras]
    if data.houseboatId:
        boat = _ensure_unit_free(db, data.houseboatId, start, end)
        if total is None and data.status != BookingStatus.MAINTENANCE.value:
            quote = quote_stay(
                db, boat.model_id, local_date(start), local_date(end),
                guests=data.numberOfGuests,
                extras=[{"id": e["id"], "quantity": e["quantity"]} for e in extras],
                discount=data.discount,
            )
            total = quote.total
            extras = [line.as_selected_extra() for line in quote.extras]
    if total is None:
        total = Decimal("0")

    booking = Booking(
        id=str(uuid.uuid4()),
        houseboat_id=data.houseboatId,
        restaurant_table_id=data.restaurantTableId,
        daily_travel_package_id=data.dailyTravelPackageId,
        client_name=data.clientName,
        client_email=data.clientEmail.lower(),
        client_phone=data.clientPhone,
        start_time=start,
        end_time=end,
        number_of_guests=data.numberOfGuests,
        total_price=total,
        amount_paid=Decimal("0"),
        discount=data.discount,
        status=data.status,
        source=data.source or "manual",
        notes=data.notes,
        selected_extras=extras,
    )
    db.add(booking)
    db.flush()

    if data.initialPaymentAmount:
        db.add(PaymentTransaction(
            id=str(uuid.uuid4()),
            booking_id=booking.id,
            amount=data.initialPaymentAmount,
            status="paid",
            method=data.initialPaymentMethod,
            provider_ref=data.initialPaymentRef,
            details={"source": "manual", "method": data.initialPaymentMethod, "ref": data.initialPaymentRef},
        ))
    reconcile_booking(db, booking.id, commit=False)
    log_audit(db, actor, "booking.created", "booking", booking.id, {"source": booking.source, "total_price": total})
    db.commit()
    db.refresh(booking)
    return booking


def update_booking(db: Session, booking_id: str, patch: BookingUpdate, *, actor: str) -> tuple[Booking, bool]:
    """Apply a partial staff edit. Returns (booking, status_changed)."""
    b = db.get(Booking, booking_id)
    if not b:
        raise NotFoundError("Booking not found")
    fields = patch.model_dump(exclude_unset=True)
    old_status = b.status

    start = as_utc(fields.get("startTime") or b.start_time)
    end = as_utc(fields.get("endTime") or b.end_time)
    if end <= start:
        raise ValueError("end time must be after start time")
    unit_id = fields.get("houseboatId", b.houseboat_id)
    new_status = fields.get("status", b.status)
    moved = any(k in fields for k in ("houseboatId", "startTime", "endTime")) or (
        old_status == BookingStatus.CANCELLED.value and new_status != old_status
    )
    if unit_id and moved and new_status != BookingStatus.CANCELLED.value:
        _ensure_unit_free(db, unit_id, start, end, exclude_booking_id=b.id)

    simple = {
        "houseboatId": "houseboat_id",
        "clientName": "client_name",
        "clientPhone": "client_phone",
        "numberOfGuests": "number_of_guests",
        "status": "status",
        "source": "source",
        "notes": "notes",
        "discount": "discount",
        "billingNif": "billing_nif",
        "billingName": "billing_name",
        "billingAddress": "billing_address",
    }
    for key, attr in simple.items():
        if key in fields:
            setattr(b, attr, fields[key])
    if "clientEmail" in fields:
        b.client_email = (fields["clientEmail"] or "").lower()
    b.start_time, b.end_time = start, end
    if "selectedExtras" in fields:
        b.selected_extras = [e.model_dump(mode="json") for e in patch.selectedExtras or []]
    if "price" in fields and fields["price"] is not None:
        b.total_price = fields["price"]
        reconcile_booking(db, b.id, commit=False)

    if fields.get("paymentStatus"):
        b.payment_status = fields["paymentStatus"]
    log_audit(db, actor, "booking.updated", "booking", b.id, {k: v for k, v in fields.items() if k != "selectedExtras"})
    db.commit()
    db.refresh(b)
    return b, b.status != old_status


def delete_booking(db: Session, booking_id: str, *, actor: str) -> None:
    b = db.get(Booking, booking_id)
    if not b:
        raise NotFoundError("Booking not found")
    db.query(PaymentTransaction).filter(PaymentTransaction.booking_id == b.id).delete(synchronize_session=False)
    db.query(PaymentToken).filter(PaymentToken.booking_id == b.id).delete(synchronize_session=False)
    log_audit(db, actor, "booking.deleted", "booking", b.id, {"client_email": b.client_email, "total_price": b.total_price})
    db.delete(b)
    db.commit()
    logger.info("booking %s deleted by %s", booking_id, actor)


def list_bookings(db: Session, *, status: str | None = None, houseboat_id: str | None = None, start_from=None, start_to=None) -> list[Booking]:
    q = db.query(Booking)
    if status:
        q = q.filter(Booking.status == status)
    if houseboat_id:
        q = q.filter(Booking.houseboat_id == houseboat_id)
    if start_from:
        q = q.filter(Booking.start_time >= start_from)
    if start_to:
        q = q.filter(Booking.start_time < start_to)
    return q.order_by(Booking.start_time.desc()).all()
