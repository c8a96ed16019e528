from datetime import date
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from schemas.reservations import _DateRange


class PublicUnitRead(BaseModel):
    id: int
    hotel_id: int
    hotel_name: str
    city: Optional[str] = None
    country: Optional[str] = None
    name: str
    type: str
    floor: Optional[str] = None
    price_per_night: float
    # Filled when the listing was searched for dates
    nights: Optional[int] = None
    total: Optional[float] = None


class PublicBookingCreate(_DateRange):
    unit_id: int
    check_in: date
    check_out: date
    guest_name: str = Field(..., min_length=1, max_length=160)
    guest_email: EmailStr
    guest_phone: Optional[str] = Field(None, max_length=40)
    adults: int = Field(1, ge=1, le=20)
    children: int = Field(0, ge=0, le=20)
    notes: Optional[str] = Field(None, max_length=1000)


class PublicBookingRead(BaseModel):
    reservation_id: int
    reference: str
    status: str
    hotel_name: str
    unit_name: str
    check_in: date
    check_out: date
    nights: int
    total_amount: float
