import datetime as dt
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class RateUpdate(BaseModel):
    price: Optional[float] = Field(None, ge=0)
    available: Optional[bool] = None

    @model_validator(mode="after")
    def _something_to_change(self):
        if self.price is None and self.available is None:
            raise ValueError("Send a price, an availability or both")
        return self


class RateRangeUpdate(RateUpdate):
    from_date: date
    to_date: date

    @model_validator(mode="after")
    def _check_dates(self):
        if self.to_date < self.from_date:
            raise ValueError("to_date must not be before from_date")
        if (self.to_date - self.from_date).days >= 366:
            raise ValueError("A range covers at most 366 days")
        return self


class NightlyRate(BaseModel):
    date: dt.date
    price: float
    price_source: str
    closed: bool


class DayAvailability(NightlyRate):
    reservation_id: Optional[int] = None
    available: bool


class UnitAvailability(BaseModel):
    unit_id: int
    number: str
    name: str
    status: str
    base_price: float
    days: List[DayAvailability]


class AvailabilityRead(BaseModel):
    date_from: date
    date_to: date
    units: List[UnitAvailability]


class QuoteRead(BaseModel):
    unit_id: int
    check_in: date
    check_out: date
    nights: int
    total: float
    available: bool
    closed_dates: List[date]
    nightly: List[NightlyRate]
