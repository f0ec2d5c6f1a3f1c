from decimal import Decimal
from sqlalchemy import String, Numeric, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base

class Extra(Base):
    __tablename__ = "extras"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    price_type: Mapped[str] = mapped_column(String(20), default="per_stay")  # per_day, per_stay, per_person
    active: Mapped[bool] = mapped_column(Boolean, default=True)
