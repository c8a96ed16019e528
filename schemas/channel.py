from datetime import date
from typing import Optional, Literal

from pydantic import BaseModel, EmailStr, Field

from schemas.reservations import _DateRange


ChannelEvent = Literal["booking_new", "booking_modification", "booking_cancellation"]


class ChannelGuest(BaseModel):
    name: str = Field("Guest", max_length=160)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=40)


class ChannelBookingEvent(_DateRange):
    event: ChannelEvent = "booking_new"
    booking_id: str = Field(..., min_length=1, max_length=100)
    hotel_id: int
    # Without a unit the first free unit of the hotel takes the booking
    unit_id: Optional[int] = None
    check_in: date
    check_out: date
    guest: ChannelGuest = Field(default_factory=ChannelGuest)
    total_amount: Optional[float] = Field(None, ge=0)
    ota: Optional[str] = Field(None, max_length=30)
    adults: int = Field(1, ge=0, le=20)
    children: int = Field(0, ge=0, le=20)
    notes: Optional[str] = None


class ChannelWebhookResult(BaseModel):
    status: str
    action: str
    reservation_id: Optional[int] = None
    log_id: int
