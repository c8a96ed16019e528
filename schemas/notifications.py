from datetime import datetime
from typing import Optional, Literal, Any

from pydantic import BaseModel, Field, ConfigDict


NotificationType = Literal["info", "success", "warning", "error", "booking", "task", "payment", "system"]


class NotificationCreate(BaseModel):
    hotel_id: Optional[int] = None
    title: str = Field(..., min_length=1, max_length=150)
    message: str = Field(..., min_length=1)
    type: NotificationType = "info"
    data: Optional[dict] = None
    action_url: Optional[str] = Field(None, max_length=255)
    for_me: bool = False


class NotificationRead(BaseModel):
    id: int
    hotel_id: int
    user_id: Optional[int] = None
    title: str
    message: str
    type: str
    is_read: bool
    read_at: Optional[datetime] = None
    data: Optional[Any] = None
    action_url: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    unread: int
