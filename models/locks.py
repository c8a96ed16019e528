from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Index,
)
from sqlalchemy.orm import relationship

from database.connection import Base


class SmartLock(Base):
    __tablename__ = "smart_locks"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, unique=True)
    name = Column(String(100), nullable=True)
    provider = Column(String(20), nullable=False, default="generic")
    device_id = Column(String(120), nullable=True)
    status = Column(String(20), nullable=False, default="offline")  # online | offline | low-battery
    battery_level = Column(Integer, nullable=True)
    last_sync = Column(DateTime, nullable=True)
    credentials = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    unit = relationship("Unit", back_populates="smart_lock")
    access_keys = relationship("AccessKey", back_populates="lock", cascade="all, delete-orphan")


class AccessKey(Base):
    __tablename__ = "access_keys"
    __table_args__ = (
        Index("idx_access_key_lock_code", "lock_id", "code"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True)
    lock_id = Column(Integer, ForeignKey("smart_locks.id", ondelete="CASCADE"), nullable=False)
    reservation_id = Column(Integer, ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True)
    guest_name = Column(String(160), nullable=True)
    code = Column(String(12), nullable=False)
    valid_from = Column(DateTime, nullable=False)
    valid_to = Column(DateTime, nullable=False)
    status = Column(String(10), nullable=False, default="active")  # active | expired | revoked
    usage_count = Column(Integer, nullable=False, default=0)
    provider_response = Column(JSON, nullable=True)
    revoked_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    lock = relationship("SmartLock", back_populates="access_keys")
    reservation = relationship("Reservation", back_populates="access_keys")
