import json
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional, List

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator


class ClientIn(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = ""


class BillingIn(BaseModel):
    nif: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None


class ExtraIn(BaseModel):
    id: str
    quantity: int = Field(default=1, ge=1)


class CheckoutRequest(BaseModel):
    modelId: str
    checkIn: date
    checkOut: date
    checkInTime: Optional[str] = None  # "HH:MM" local; applied to both dates
    guests: int = Field(default=1, ge=1)
    paymentOption: Literal["deposit", "full"] = "deposit"
    client: ClientIn
    billing: Optional[BillingIn] = None
    extras: List[ExtraIn] = Field(default_factory=list)

    @field_validator("checkOut")
    @classmethod
    def _after_check_in(cls, v: date, info):
        check_in = info.data.get("checkIn")
        if check_in and v <= check_in:
            raise ValueError("checkOut must be after checkIn")
        return v


class QuoteRequest(BaseModel):
    modelId: str
    checkIn: date
    checkOut: date
    guests: int = Field(default=1, ge=1)
    extras: List[ExtraIn] = Field(default_factory=list)


class _Intent(BaseModel):
    """Payment intent carried through the processor as string metadata."""

    def to_metadata(self) -> dict[str, str]:
        out = {}
        for key, value in self.model_dump(mode="json").items():
            if value is None:
                continue
            out[key] = value if isinstance(value, str) else json.dumps(value, separators=(",", ":"))
        return out

    @classmethod
    def from_metadata(cls, metadata: dict):
        """Inverse of to_metadata. Raises ValueError when a required field is missing or malformed."""
        data = {}
        for name, fld in cls.model_fields.items():
            raw = metadata.get(name)
            if raw in (None, ""):
                continue
            # numbers, decimals and datetimes parse from their string form; only containers are JSON
            if fld.annotation in (list, dict) and isinstance(raw, str):
                try:
                    raw = json.loads(raw)
                except json.JSONDecodeError:
                    raise ValueError(f"metadata field {name} is not valid JSON")
            data[name] = raw
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"incomplete payment metadata: {e.errors()[0]['loc']}")


class CheckoutIntent(_Intent):
    """Everything needed to create the booking once payment is confirmed."""
    kind: Literal["new_booking"] = "new_booking"
    boat_id: str
    model_id: str
    client_name: str
    client_email: str
    client_phone: str = ""
    start_time: datetime
    end_time: datetime
    guests: int
    total_price: Decimal
    deposit_amount: Decimal
    amount_due: Decimal
    payment_option: Literal["deposit", "full"]
    discount: Decimal = Decimal("0")
    extras: list = Field(default_factory=list)  # [[extra_id, quantity], ...]
    billing_nif: Optional[str] = None
    billing_name: Optional[str] = None
    billing_address: Optional[str] = None


class PaymentLinkIntent(_Intent):
    """Balance payment against an existing booking through a payment link."""
    kind: Literal["payment_link"] = "payment_link"
    booking_id: str
    token_id: str
    amount_due: Decimal


def intent_from_metadata(metadata: dict) -> CheckoutIntent | PaymentLinkIntent:
    if (metadata or {}).get("booking_id"):
        return PaymentLinkIntent.from_metadata(metadata)
    return CheckoutIntent.from_metadata(metadata or {})
