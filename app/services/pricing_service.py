"""Stay pricing.

`compute_price` is pure: two dates and a pair of nightly rates in, a
`PriceBreakdown` out. `quote_stay` wraps it with the catalog lookups (tariff
season, model rates, extras, discount) used by checkout and manual bookings.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_CEILING

from sqlalchemy.orm import Session

from app.models.extra import Extra
from app.models.houseboat import HouseboatModel
from app.models.tariff import ModelPrice, Tariff

PREPARATION_FEE = Decimal("76")
DEPOSIT_RATE = Decimal("0.30")
# date.weekday(): Friday=4, Saturday=5
WEEKEND_DAYS = (4, 5)


@dataclass(frozen=True)
class NightlyRates:
    weekday: Decimal
    weekend: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    weekday_nights: int
    weekday_price: Decimal
    weekend_nights: int
    weekend_price: Decimal
    preparation_fee: Decimal
    total: Decimal
    deposit: Decimal

    @property
    def nights(self) -> int:
        return self.weekday_nights + self.weekend_nights

    def to_dict(self) -> dict:
        return {
            "weekdayNights": self.weekday_nights,
            "weekdayPrice": float(self.weekday_price),
            "weekendNights": self.weekend_nights,
            "weekendPrice": float(self.weekend_price),
            "preparationFee": float(self.preparation_fee),
            "total": float(self.total),
            "deposit": float(self.deposit),
        }


@dataclass(frozen=True)
class QuoteLine:
    id: str
    name: str
    price: Decimal
    quantity: int
    line_total: Decimal

    def as_selected_extra(self) -> dict:
        return {"id": self.id, "name": self.name, "price": float(self.price), "quantity": self.quantity}


@dataclass(frozen=True)
class Quote:
    breakdown: PriceBreakdown
    tariff_name: str | None
    extras: list[QuoteLine] = field(default_factory=list)
    extras_total: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    deposit: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return {
            **self.breakdown.to_dict(),
            "tariffName": self.tariff_name,
            "extras": [e.as_selected_extra() for e in self.extras],
            "extrasTotal": float(self.extras_total),
            "discount": float(self.discount),
            "total": float(self.total),
            "deposit": float(self.deposit),
        }


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def compute_deposit(total: Decimal) -> Decimal:
    """30% of total rounded up to a whole currency unit."""
    return (Decimal(total) * DEPOSIT_RATE).to_integral_value(rounding=ROUND_CEILING)


def compute_price(check_in: date | datetime, check_out: date | datetime, rates: NightlyRates) -> PriceBreakdown:
    start = _as_date(check_in)
    end = _as_date(check_out)
    nights = (end - start).days

    if nights <= 0:
        # Zero-length stays quote the fee alone; booking paths reject them before calling this.
        return PriceBreakdown(
            weekday_nights=0,
            weekday_price=rates.weekday,
            weekend_nights=0,
            weekend_price=rates.weekend,
            preparation_fee=PREPARATION_FEE,
            total=PREPARATION_FEE,
            deposit=compute_deposit(PREPARATION_FEE),
        )

    weekend = sum(1 for i in range(nights) if (start + timedelta(days=i)).weekday() in WEEKEND_DAYS)
    weekday = nights - weekend
    total = weekday * rates.weekday + weekend * rates.weekend + PREPARATION_FEE
    return PriceBreakdown(
        weekday_nights=weekday,
        weekday_price=rates.weekday,
        weekend_nights=weekend,
        weekend_price=rates.weekend,
        preparation_fee=PREPARATION_FEE,
        total=total,
        deposit=compute_deposit(total),
    )


def _in_period(month_day: str, period: dict) -> bool:
    start, end = period.get("start", ""), period.get("end", "")
    if not start or not end:
        return False
    if start <= end:
        return start <= month_day <= end
    return month_day >= start or month_day <= end


def resolve_tariff(tariffs: list[Tariff], check_in: date) -> Tariff | None:
    """First tariff whose MM-DD periods contain the check-in day."""
    md = check_in.strftime("%m-%d")
    for t in tariffs:
        if any(_in_period(md, p) for p in (t.periods or [])):
            return t
    return None


def rates_for_model(db: Session, model_id: str, check_in: date) -> tuple[NightlyRates, Tariff | None]:
    prices = db.query(ModelPrice).filter(ModelPrice.model_id == model_id).order_by(ModelPrice.id.asc()).all()
    if not prices:
        raise ValueError("no prices configured for this model")
    tariff = resolve_tariff(db.query(Tariff).order_by(Tariff.name.asc()).all(), check_in)
    row = None
    if tariff:
        row = next((p for p in prices if p.tariff_id == tariff.id), None)
    if row is None:
        row = prices[0]
    return NightlyRates(weekday=Decimal(row.weekday_price), weekend=Decimal(row.weekend_price)), tariff


def _extra_lines(db: Session, selected: list[dict], nights: int, guests: int) -> list[QuoteLine]:
    lines = []
    for item in selected or []:
        extra = db.get(Extra, item.get("id"))
        if not extra or not extra.active:
            raise ValueError(f"unknown extra {item.get('id')}")
        qty = int(item.get("quantity") or 1)
        if qty < 1:
            raise ValueError("extra quantity must be >= 1")
        price = Decimal(extra.price)
        if extra.price_type == "per_day":
            line_total = price * max(1, nights) * qty
        elif extra.price_type == "per_person":
            line_total = price * max(1, guests) * qty
        else:
            line_total = price * qty
        lines.append(QuoteLine(id=extra.id, name=extra.name, price=price, quantity=qty, line_total=line_total))
    return lines


def quote_stay(
    db: Session,
    model_id: str,
    check_in: date,
    check_out: date,
    *,
    guests: int = 1,
    extras: list[dict] | None = None,
    discount: Decimal = Decimal("0"),
) -> Quote:
    model = db.get(HouseboatModel, model_id)
    if not model:
        raise ValueError("houseboat model not found")
    if check_out <= check_in:
        raise ValueError("check-out must be after check-in")
    if guests < 1:
        raise ValueError("guests must be >= 1")
    if model.maximum_capacity and guests > model.maximum_capacity:
        raise ValueError(f"{model.name} takes at most {model.maximum_capacity} guests")
    discount = Decimal(discount or 0)
    if discount < 0:
        raise ValueError("discount cannot be negative")

    rates, tariff = rates_for_model(db, model_id, check_in)
    breakdown = compute_price(check_in, check_out, rates)
    lines = _extra_lines(db, extras or [], breakdown.nights, guests)
    extras_total = sum((line.line_total for line in lines), Decimal("0"))
    total = breakdown.total + extras_total - discount
    if total < 0:
        raise ValueError("discount exceeds the stay price")
    return Quote(
        breakdown=breakdown,
        tariff_name=tariff.name if tariff else None,
        extras=lines,
        extras_total=extras_total,
        discount=discount,
        total=total,
        deposit=compute_deposit(total),
    )
