from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ConfigDict


class GuestBase(BaseModel):
    first_name: Optional[str] = Field(None, max_length=80)
    last_name: Optional[str] = Field(None, max_length=80)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=40)
    nationality: Optional[str] = Field(None, max_length=60)
    id_type: Optional[str] = Field(None, max_length=30)
    id_number: Optional[str] = Field(None, max_length=60)
    notes: Optional[str] = None


class GuestCreate(GuestBase):
    hotel_id: Optional[int] = None


class GuestUpdate(GuestBase):
    pass


class GuestRead(GuestBase):
    id: int
    hotel_id: int
    full_name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
