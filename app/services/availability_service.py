from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.dates import as_utc
from app.models.booking import Booking, BookingStatus
from app.models.houseboat import Boat


@dataclass(frozen=True)
class Availability:
    available: bool
    unit_id: str | None = None


def overlaps(s1: datetime, e1: datetime, s2: datetime, e2: datetime) -> bool:
    """Half-open [s1, e1) vs [s2, e2); touching endpoints do not overlap."""
    return as_utc(s1) < as_utc(e2) and as_utc(e1) > as_utc(s2)


def _active_bookings(db: Session, unit_ids: list[str], exclude_booking_id: str | None = None) -> list[Booking]:
    if not unit_ids:
        return []
    q = db.query(Booking).filter(
        Booking.houseboat_id.in_(unit_ids),
        Booking.status != BookingStatus.CANCELLED.value,
    )
    if exclude_booking_id:
        q = q.filter(Booking.id != exclude_booking_id)
    return q.all()


def unit_is_free(db: Session, unit_id: str, start: datetime, end: datetime, exclude_booking_id: str | None = None) -> bool:
    return not any(
        overlaps(b.start_time, b.end_time, start, end)
        for b in _active_bookings(db, [unit_id], exclude_booking_id)
    )


def find_available_unit(db: Session, model_id: str, start: datetime, end: datetime, exclude_unit_ids: tuple[str, ...] = ()) -> Availability:
    """First boat of the model, in listing order, with no overlapping non-cancelled booking."""
    units = (
        db.query(Boat)
        .filter(Boat.model_id == model_id)
        .order_by(Boat.created_at.asc(), Boat.id.asc())
        .all()
    )
    units = [u for u in units if u.id not in exclude_unit_ids]
    if not units:
        return Availability(available=False)

    by_unit: dict[str, list[Booking]] = {}
    for b in _active_bookings(db, [u.id for u in units]):
        by_unit.setdefault(b.houseboat_id, []).append(b)

    for unit in units:
        if not any(overlaps(b.start_time, b.end_time, start, end) for b in by_unit.get(unit.id, [])):
            return Availability(available=True, unit_id=unit.id)
    return Availability(available=False)


def lock_unit(db: Session, unit_id: str) -> Boat | None:
    """Row lock on the boat; every booking insert for the unit serialises on it until commit."""
    return db.execute(select(Boat).where(Boat.id == unit_id).with_for_update()).scalar_one_or_none()
