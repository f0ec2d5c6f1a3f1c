from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import require_staff, http_error
from app.models.booking import Booking, BookingStatus
from app.models.payment import PaymentTransaction
from app.models.user import User
from app.schemas.booking import BookingCreate, BookingUpdate
from app.services import booking_service, notification_service
from app.services.errors import ServiceError
from app.services.reconciliation_service import remaining_balance
from app.services.transaction_service import list_transactions

router = APIRouter(tags=["bookings"])


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def booking_dict(b: Booking) -> dict:
    return {
        "id": b.id,
        "houseboatId": b.houseboat_id,
        "restaurantTableId": b.restaurant_table_id,
        "dailyTravelPackageId": b.daily_travel_package_id,
        "clientName": b.client_name,
        "clientEmail": b.client_email,
        "clientPhone": b.client_phone,
        "startTime": _iso(b.start_time),
        "endTime": _iso(b.end_time),
        "numberOfGuests": b.number_of_guests,
        "totalPrice": float(b.total_price or 0),
        "amountPaid": float(b.amount_paid or 0),
        "remaining": float(max(remaining_balance(b), 0)),
        "discount": float(b.discount or 0),
        "status": b.status,
        "paymentStatus": b.payment_status,
        "source": b.source,
        "notes": b.notes,
        "selectedExtras": b.selected_extras or [],
        "billingNif": b.billing_nif,
        "billingName": b.billing_name,
        "billingAddress": b.billing_address,
        "emailSent": b.email_sent,
        "createdAt": _iso(b.created_at),
    }


def transaction_dict(t: PaymentTransaction) -> dict:
    return {
        "id": t.id,
        "bookingId": t.booking_id,
        "amount": float(t.amount),
        "status": t.status,
        "method": t.method,
        "ref": t.provider_ref,
        "metadata": t.details or {},
        "createdAt": _iso(t.created_at),
    }


@router.get("/bookings")
def list_bookings(
    status: str | None = None,
    houseboatId: str | None = None,
    start_from: datetime | None = None,
    start_to: datetime | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    rows = booking_service.list_bookings(db, status=status, houseboat_id=houseboatId, start_from=start_from, start_to=start_to)
    return [booking_dict(b) for b in rows]


@router.get("/bookings/{booking_id}")
def get_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    b = db.get(Booking, booking_id)
    if not b:
        raise HTTPException(status_code=404, detail="Booking not found")
    out = booking_dict(b)
    out["transactions"] = [transaction_dict(t) for t in list_transactions(db, b.id)]
    return out


@router.post("/bookings")
def create_booking(body: BookingCreate, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    try:
        b = booking_service.create_booking(db, body, actor=user.id)
    except ServiceError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return booking_dict(b)


@router.put("/bookings/{booking_id}")
def update_booking(booking_id: str, body: BookingUpdate, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    try:
        b, status_changed = booking_service.update_booking(db, booking_id, body, actor=user.id)
    except ServiceError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if status_changed and b.status in (BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value):
        notification_service.send_status_update(db, b)
    return booking_dict(b)


@router.delete("/bookings/{booking_id}")
def delete_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    try:
        booking_service.delete_booking(db, booking_id, actor=user.id)
    except ServiceError as e:
        raise http_error(e)
    return {"ok": True}
