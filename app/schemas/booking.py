from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Literal

from pydantic import BaseModel, Field

BookingStatusIn = Literal["Pending", "Confirmed", "Cancelled", "Maintenance"]
PaymentStatusIn = Literal["unpaid", "deposit_paid", "fully_paid"]


class SelectedExtra(BaseModel):
    id: str
    name: str = ""
    price: Decimal = Decimal("0")
    quantity: int = Field(default=1, ge=1)


class BookingCreate(BaseModel):
    houseboatId: Optional[str] = None
    restaurantTableId: Optional[str] = None
    dailyTravelPackageId: Optional[str] = None
    clientName: str = ""
    clientEmail: str = ""
    clientPhone: str = ""
    startTime: datetime
    endTime: datetime
    numberOfGuests: int = Field(default=1, ge=1)
    status: BookingStatusIn = "Pending"
    source: str = "manual"
    notes: str = ""
    price: Optional[Decimal] = Field(default=None, ge=0)  # quoted from the boat's model when omitted
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    selectedExtras: List[SelectedExtra] = Field(default_factory=list)
    initialPaymentAmount: Optional[Decimal] = Field(default=None, gt=0)
    initialPaymentMethod: str = "manual"
    initialPaymentRef: str = ""


class BookingUpdate(BaseModel):
    houseboatId: Optional[str] = None
    clientName: Optional[str] = None
    clientEmail: Optional[str] = None
    clientPhone: Optional[str] = None
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    numberOfGuests: Optional[int] = Field(default=None, ge=1)
    status: Optional[BookingStatusIn] = None
    paymentStatus: Optional[PaymentStatusIn] = None  # explicit staff override
    source: Optional[str] = None
    notes: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    discount: Optional[Decimal] = Field(default=None, ge=0)
    selectedExtras: Optional[List[SelectedExtra]] = None
    billingNif: Optional[str] = None
    billingName: Optional[str] = None
    billingAddress: Optional[str] = None
