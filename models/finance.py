from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
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


class Receipt(Base):
    """Money in (guest payments) or out (expenses) for a hotel"""
    __tablename__ = "receipts"
    __table_args__ = (
        Index("idx_receipt_hotel_date", "hotel_id", "date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    type = Column(String(10), nullable=False)  # income | expense
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(String(20), nullable=False, default="cash")
    reservation_id = Column(Integer, ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    reservation = relationship("Reservation")
    created_by = relationship("User")

    @property
    def reservation_number(self):
        return f"RES-{self.reservation_id:05d}" if self.reservation_id else None

    @property
    def user(self) -> str:
        return self.created_by.username if self.created_by else "User"


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("hotel_id", "invoice_number", name="uq_invoice_hotel_number"),
        Index("idx_invoice_hotel_status", "hotel_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    invoice_number = Column(String(30), nullable=False)
    contract_number = Column(String(60), nullable=True)
    guest_id = Column(Integer, ForeignKey("guests.id", ondelete="SET NULL"), nullable=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True)

    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    vat = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(10), nullable=False, default="pending")  # pending | paid | overdue
    paid_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    guest = relationship("Guest")
    reservation = relationship("Reservation")

    @property
    def guest_name(self) -> str:
        return self.guest.full_name if self.guest else "Guest"


class PaymentLink(Base):
    __tablename__ = "payment_links"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(255), nullable=True)
    token = Column(String(64), unique=True, nullable=False, index=True)
    url = Column(String(255), nullable=False)
    status = Column(String(10), nullable=False, default="active")  # active | paid | expired | cancelled
    expires_at = Column(DateTime, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    reservation = relationship("Reservation")


class OwnerStatement(Base):
    __tablename__ = "owner_statements"
    __table_args__ = (
        Index("idx_statement_hotel_period", "hotel_id", "period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False)
    owner_name = Column(String(120), nullable=False)
    owner_id = Column(String(60), nullable=True)
    period = Column(String(7), nullable=False)  # YYYY-MM

    total_revenue = Column(Numeric(12, 2), nullable=False, default=0)
    expenses = Column(Numeric(12, 2), nullable=False, default=0)
    commission = Column(Numeric(12, 2), nullable=False, default=0)
    net_payout = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(10), nullable=False, default="draft")  # draft | sent | paid

    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
