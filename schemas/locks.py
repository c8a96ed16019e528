from datetime import datetime
from typing import Optional, Literal, Any

from pydantic import BaseModel, Field, ConfigDict, model_validator

from schemas.common import PartialUpdate


LockProvider = Literal["ttlock", "yale", "august", "schlage", "nuki", "esp32", "generic"]


class SmartLockCreate(BaseModel):
    unit_id: int
    name: Optional[str] = Field(None, max_length=100)
    provider: LockProvider = "generic"
    device_id: Optional[str] = Field(None, max_length=120)
    credentials: Optional[dict] = None


class SmartLockUpdate(PartialUpdate):
    nullable_fields = ("name", "device_id", "credentials")

    name: Optional[str] = Field(None, max_length=100)
    provider: Optional[LockProvider] = None
    device_id: Optional[str] = Field(None, max_length=120)
    credentials: Optional[dict] = None


class SmartLockRead(BaseModel):
    id: int
    hotel_id: int
    unit_id: int
    name: Optional[str] = None
    provider: str
    device_id: Optional[str] = None
    status: Literal["online", "offline", "low-battery"]
    battery_level: Optional[int] = None
    last_sync: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccessKeyCreate(BaseModel):
    reservation_id: Optional[int] = None
    guest_name: Optional[str] = Field(None, max_length=160)
    valid_from: datetime
    valid_to: datetime

    @model_validator(mode="after")
    def _check_window(self):
        if self.valid_to <= self.valid_from:
            raise ValueError("valid_to must be after valid_from")
        return self


class AccessKeyRead(BaseModel):
    id: int
    hotel_id: int
    lock_id: int
    reservation_id: Optional[int] = None
    guest_name: Optional[str] = None
    code: str
    valid_from: datetime
    valid_to: datetime
    status: Literal["active", "expired", "revoked"]
    usage_count: int
    provider_response: Optional[Any] = None
    revoked_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccessVerifyRequest(BaseModel):
    code: str = Field(..., min_length=4, max_length=12)


class AccessVerifyResult(BaseModel):
    valid: bool
    reason: Literal["ok", "not_found", "expired", "not_yet_valid", "revoked"]
    access_key_id: Optional[int] = None
    usage_count: Optional[int] = None
