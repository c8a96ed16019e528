from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Date,
    DateTime,
    Numeric,
    Text,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from database.connection import Base


# Reservation statuses that still hold the unit
LIVE_RESERVATION_STATUSES = ("pending", "confirmed", "checked_in")
TERMINAL_RESERVATION_STATUSES = ("checked_out", "cancelled", "no_show")


class Hotel(Base):
    __tablename__ = "hotels"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    type = Column(String(20), nullable=False, default="hotel")  # hotel | apartments | resort | villa
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    channel_connected = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User", back_populates="hotels")
    units = relationship("Unit", back_populates="hotel")

    @property
    def units_count(self) -> int:
        return len(self.units)


class Unit(Base):
    __tablename__ = "units"
    __table_args__ = (
        UniqueConstraint("hotel_id", "number", name="uq_unit_hotel_number"),
        Index("idx_unit_hotel_status", "hotel_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    number = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False, default="room")  # room | suite | studio | apartment
    floor = Column(String(10), nullable=True)
    price_per_night = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="available")  # available | occupied | maintenance | out_of_service

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    hotel = relationship("Hotel", back_populates="units")
    reservations = relationship("Reservation", back_populates="unit")
    smart_lock = relationship("SmartLock", back_populates="unit", uselist=False)
    rates = relationship("UnitRate", back_populates="unit", cascade="all, delete-orphan")


class UnitRate(Base):
    """Nightly price override for one unit and date; a closed date takes no online bookings"""
    __tablename__ = "unit_rates"
    __table_args__ = (
        UniqueConstraint("unit_id", "date", name="uq_unit_rate_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    unit = relationship("Unit", back_populates="rates")


class Guest(Base):
    __tablename__ = "guests"
    __table_args__ = (
        Index("idx_guest_hotel_name", "hotel_id", "last_name", "first_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(String(80), nullable=True)
    last_name = Column(String(80), nullable=True)
    email = Column(String(120), nullable=True)
    phone = Column(String(40), nullable=True)
    nationality = Column(String(60), nullable=True)
    id_type = Column(String(30), nullable=True)
    id_number = Column(String(60), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    reservations = relationship("Reservation", back_populates="guest")

    @property
    def full_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Guest"


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        Index("idx_reservation_unit_dates", "unit_id", "check_in", "check_out"),
        Index("idx_reservation_hotel_status", "hotel_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="RESTRICT"), nullable=False)
    guest_id = Column(Integer, ForeignKey("guests.id", ondelete="SET NULL"), nullable=True)

    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    adults = Column(Integer, nullable=False, default=1)
    children = Column(Integer, nullable=False, default=0)
    source = Column(String(20), nullable=False, default="direct")
    status = Column(String(20), nullable=False, default="confirmed")
    # Booking id on the channel for imported bookings
    external_id = Column(String(100), nullable=True, index=True)

    price_per_night = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    checked_in_at = Column(DateTime, nullable=True)
    checked_out_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    unit = relationship("Unit", back_populates="reservations")
    guest = relationship("Guest", back_populates="reservations")
    access_keys = relationship("AccessKey", back_populates="reservation")

    @property
    def nights(self) -> int:
        if not self.check_in or not self.check_out:
            return 0
        return max((self.check_out - self.check_in).days, 0)

    @property
    def balance(self) -> Decimal:
        return Decimal(str(self.total_amount or 0)) - Decimal(str(self.paid_amount or 0))

    @property
    def guest_name(self) -> str:
        return self.guest.full_name if self.guest else "Guest"

    @property
    def unit_name(self):
        return self.unit.name if self.unit else None

    def is_editable(self) -> bool:
        return self.status not in TERMINAL_RESERVATION_STATUSES
