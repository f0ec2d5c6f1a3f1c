from decimal import Decimal
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator


class ModelCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1)
    optimalCapacity: int = Field(default=2, ge=1)
    maximumCapacity: int = Field(default=2, ge=1)


class BoatCreate(BaseModel):
    name: str = Field(min_length=1)
    modelId: str


class TariffPeriod(BaseModel):
    start: str  # MM-DD
    end: str

    @field_validator("start", "end")
    @classmethod
    def _month_day(cls, v: str) -> str:
        parts = v.split("-")
        if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
            raise ValueError("expected MM-DD")
        month, day = int(parts[0]), int(parts[1])
        if not (1 <= month <= 12 and 1 <= day <= 31):
            raise ValueError("expected MM-DD")
        return v


class TariffCreate(BaseModel):
    name: str = Field(min_length=1)
    periods: List[TariffPeriod] = Field(default_factory=list)


class ModelPriceIn(BaseModel):
    modelId: str
    tariffId: str
    weekday: Decimal = Field(ge=0)
    weekend: Decimal = Field(ge=0)


class ExtraCreate(BaseModel):
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    priceType: Literal["per_day", "per_stay", "per_person"] = "per_stay"
    active: bool = True
