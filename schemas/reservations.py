import datetime as dt
from datetime import date, datetime
from typing import Optional, Literal, List

from pydantic import BaseModel, Field, ConfigDict, model_validator

from schemas.common import PartialUpdate
from schemas.guests import GuestBase


ReservationStatus = Literal["pending", "confirmed", "checked_in", "checked_out", "cancelled", "no_show"]
ReservationSource = Literal[
    "direct", "booking", "airbnb", "expedia", "agoda", "walk_in", "website", "channel", "block", "other"
]
PaymentMethod = Literal["cash", "card", "transfer", "online", "other"]


class _DateRange(BaseModel):
    @model_validator(mode="after")
    def _check_dates(self):
        check_in = getattr(self, "check_in", None)
        check_out = getattr(self, "check_out", None)
        if check_in and check_out and check_out <= check_in:
            raise ValueError("check_out must be after check_in")
        return self


class ReservationCreate(_DateRange):
    unit_id: int
    guest_id: Optional[int] = None
    guest: Optional[GuestBase] = None
    check_in: date
    check_out: date
    adults: int = Field(1, ge=0, le=20)
    children: int = Field(0, ge=0, le=20)
    source: ReservationSource = "direct"
    status: Literal["pending", "confirmed"] = "confirmed"
    price_per_night: Optional[float] = Field(None, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _one_guest_reference(self):
        if self.guest_id is not None and self.guest is not None:
            raise ValueError("Send either guest_id or guest, not both")
        return self


class ReservationUpdate(PartialUpdate, _DateRange):
    nullable_fields = ("guest_id", "notes")

    unit_id: Optional[int] = None
    guest_id: Optional[int] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    adults: Optional[int] = Field(None, ge=0, le=20)
    children: Optional[int] = Field(None, ge=0, le=20)
    source: Optional[ReservationSource] = None
    status: Optional[Literal["pending", "confirmed"]] = None
    price_per_night: Optional[float] = Field(None, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class ReservationRead(BaseModel):
    id: int
    hotel_id: int
    unit_id: int
    unit_name: Optional[str] = None
    guest_id: Optional[int] = None
    guest_name: str
    check_in: date
    check_out: date
    nights: int
    adults: int
    children: int
    source: str
    external_id: Optional[str] = None
    status: ReservationStatus
    dashboard_status: Optional[str] = None
    price_per_night: float
    total_amount: float
    paid_amount: float
    balance: float
    notes: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class PaymentCreate(BaseModel):
    amount: float = Field(..., gt=0)
    method: PaymentMethod = "cash"
    date: Optional[dt.date] = None
    notes: Optional[str] = None


class GenerateAccessRequest(BaseModel):
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None


class CalendarBlockCreate(BaseModel):
    unit_id: int
    from_date: date
    to_date: date
    reason: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def _check_dates(self):
        if self.to_date <= self.from_date:
            raise ValueError("to_date must be after from_date")
        return self


class CalendarUnit(BaseModel):
    id: int
    number: str
    name: str
    status: str
    floor: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CalendarRead(BaseModel):
    date_from: date
    date_to: date
    units: List[CalendarUnit]
    reservations: List[ReservationRead]
