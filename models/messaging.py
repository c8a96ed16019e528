from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    JSON,
    Index,
)
from sqlalchemy.orm import relationship

from database.connection import Base


MESSAGE_SENDERS = ("staff", "guest", "system")
MESSAGE_CHANNELS = ("direct", "booking", "airbnb", "whatsapp", "email", "system")


class Message(Base):
    """One message of the inbox; a conversation is every message with the same guest"""
    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_message_hotel_guest", "hotel_id", "guest_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    guest_id = Column(Integer, ForeignKey("guests.id", ondelete="CASCADE"), nullable=False)
    reservation_id = Column(Integer, ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True)
    sender = Column(String(10), nullable=False, default="staff")  # staff | guest | system
    sender_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    channel = Column(String(20), nullable=False, default="direct")
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    guest = relationship("Guest")


class WebhookLog(Base):
    """Every call received from the channel manager, kept for replay and audit"""
    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="SET NULL"), nullable=True)
    provider = Column(String(30), nullable=False, default="channel")
    event_type = Column(String(50), nullable=False)
    external_id = Column(String(100), nullable=True, index=True)
    payload = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="received")  # received | processed | failed
    error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    processed_at = Column(DateTime, nullable=True)
