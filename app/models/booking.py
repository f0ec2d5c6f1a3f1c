from decimal import Decimal
from enum import Enum
from sqlalchemy import String, Integer, DateTime, Numeric, Text, JSON, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base


class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    MAINTENANCE = "Maintenance"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # exactly one of these is normally set
    houseboat_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)  # boat (unit) id
    restaurant_table_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    daily_travel_package_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    client_name: Mapped[str] = mapped_column(String(200), default="")
    client_email: Mapped[str] = mapped_column(String(320), default="", index=True)
    client_phone: Mapped[str] = mapped_column(String(40), default="")

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    number_of_guests: Mapped[int] = mapped_column(Integer, default=1)

    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(20), default=BookingStatus.PENDING.value, index=True)
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.UNPAID.value)
    source: Mapped[str] = mapped_column(String(30), default="manual")  # manual, website, phone, ...
    notes: Mapped[str] = mapped_column(Text, default="")

    selected_extras: Mapped[list] = mapped_column(JSON, default=list)  # [{id, name, price, quantity}]

    billing_nif: Mapped[str | None] = mapped_column(String(40), nullable=True)
    billing_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    billing_address: Mapped[str | None] = mapped_column(String(400), nullable=True)

    email_sent: Mapped[bool] = mapped_column(Boolean, default=False)  # payment link emailed

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
