from datetime import datetime
from typing import Optional, Literal

from pydantic import BaseModel, Field, ConfigDict


MessageChannel = Literal["direct", "booking", "airbnb", "whatsapp", "email", "system"]


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    # "guest" logs a message received outside the app
    sender: Literal["staff", "guest"] = "staff"
    channel: MessageChannel = "direct"
    reservation_id: Optional[int] = None


class MessageRead(BaseModel):
    id: int
    hotel_id: int
    guest_id: int
    reservation_id: Optional[int] = None
    sender: str
    sender_user_id: Optional[int] = None
    channel: str
    content: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationRead(BaseModel):
    guest_id: int
    hotel_id: int
    guest_name: str
    guest_email: Optional[str] = None
    reservation_id: Optional[int] = None
    channel: str
    last_message: str
    last_sender: str
    last_message_at: datetime
    unread_count: int
    message_count: int
