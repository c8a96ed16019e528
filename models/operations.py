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


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_task_hotel_status", "hotel_id", "status"),
        Index("idx_task_unit_due", "unit_id", "due_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(150), nullable=False, default="Task")
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default="other")  # cleaning | maintenance | inspection | other
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="SET NULL"), nullable=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True)
    assigned_to = Column(String(120), nullable=True)
    due_date = Column(DateTime, nullable=True)
    priority = Column(String(10), nullable=False, default="medium")  # low | medium | high
    status = Column(String(20), nullable=False, default="todo")  # todo | in-progress | completed
    completed_at = Column(DateTime, nullable=True)
    # Marks tasks generated by the reservation lifecycle (checkin_prep | arrival_prep | checkout_cleaning)
    origin = Column(String(30), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    unit = relationship("Unit")


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notification_hotel_read", "hotel_id", "is_read"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    title = Column(String(150), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="info")
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    data = Column(JSON, nullable=True)
    action_url = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
