from datetime import datetime
from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, Field

from app.schemas.checkout import BillingIn

TransactionStatus = Literal["paid", "pending", "failed", "refunded"]


class TransactionCreate(BaseModel):
    bookingId: str
    amount: Decimal = Field(gt=0)
    status: TransactionStatus = "paid"
    method: str = "manual"
    ref: str = ""
    createdAt: Optional[datetime] = None  # back-dating a payment received earlier


class TransactionUpdate(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0)
    status: Optional[TransactionStatus] = None
    method: Optional[str] = None
    ref: Optional[str] = None
    createdAt: Optional[datetime] = None


class LinkGenerateRequest(BaseModel):
    bookingId: str
    amount: Optional[Decimal] = Field(default=None, gt=0)
    email: Optional[str] = None
    skipEmail: bool = False


class LinkCheckoutRequest(BaseModel):
    token: str
    billing: Optional[BillingIn] = None


class LinkProcessRequest(BaseModel):
    token: str
    sessionId: str
    billing: Optional[BillingIn] = None
