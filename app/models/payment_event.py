from decimal import Decimal
from sqlalchemy import String, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

class PaymentEvent(Base):
    """Idempotency ledger: one row per confirmed checkout session, whichever path saw it first."""
    __tablename__ = "payment_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    provider: Mapped[str] = mapped_column(String(20), default="stripe")
    session_id: Mapped[str] = mapped_column(String(255), unique=True)
    provider_event_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    event_type: Mapped[str] = mapped_column(String(80), default="")
    source: Mapped[str] = mapped_column(String(20), default="webhook")  # webhook, link_process
    booking_id: Mapped[str] = mapped_column(String(36), index=True)
    token_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
