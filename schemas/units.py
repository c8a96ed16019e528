from datetime import datetime
from typing import Optional, Literal

from pydantic import BaseModel, Field, ConfigDict

from schemas.common import PartialUpdate


UnitType = Literal["room", "suite", "studio", "apartment"]
UnitStatus = Literal["available", "occupied", "maintenance", "out_of_service"]


class UnitBase(BaseModel):
    number: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    type: UnitType = "room"
    floor: Optional[str] = Field(None, max_length=10)
    price_per_night: float = Field(0, ge=0)
    status: UnitStatus = "available"


class UnitCreate(UnitBase):
    hotel_id: Optional[int] = None


class UnitUpdate(PartialUpdate):
    nullable_fields = ("floor",)

    number: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[UnitType] = None
    floor: Optional[str] = None
    price_per_night: Optional[float] = Field(None, ge=0)


class UnitStatusUpdate(BaseModel):
    status: UnitStatus


class UnitRead(UnitBase):
    id: int
    hotel_id: int
    display_status: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
