from decimal import Decimal
from sqlalchemy import String, Numeric, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base

class Tariff(Base):
    __tablename__ = "tariffs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(80))
    # [{"start": "MM-DD", "end": "MM-DD"}, ...]; start > end wraps over new year
    periods: Mapped[list] = mapped_column(JSON, default=list)


class ModelPrice(Base):
    __tablename__ = "model_prices"
    __table_args__ = (UniqueConstraint("model_id", "tariff_id", name="uq_model_prices_model_tariff"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    model_id: Mapped[str] = mapped_column(String(36), index=True)
    tariff_id: Mapped[str] = mapped_column(String(36), index=True)
    weekday_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    weekend_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
