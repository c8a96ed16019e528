from datetime import datetime
from typing import Optional, Literal

from pydantic import BaseModel, Field, ConfigDict

from schemas.common import PartialUpdate


HotelType = Literal["hotel", "apartments", "resort", "villa"]


class HotelBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=150)
    type: HotelType = "hotel"
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    status: Literal["active", "inactive"] = "active"
    channel_connected: bool = False


class HotelCreate(HotelBase):
    pass


class HotelUpdate(PartialUpdate):
    nullable_fields = ("address", "city", "country")

    name: Optional[str] = Field(None, min_length=2, max_length=150)
    type: Optional[HotelType] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None
    channel_connected: Optional[bool] = None


class HotelRead(HotelBase):
    id: int
    owner_id: int
    units_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
