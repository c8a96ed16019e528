"""
Reservation services
Business logic for:
- Availability (no overlapping live bookings on a unit)
- Creating and editing bookings
- Check-in / check-out / cancel / no-show
- Guest payments against a booking
- Access codes for the booked unit

Nothing here commits: the routers own the transaction.
"""

from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from config import CHECKIN_HOUR, CHECKOUT_HOUR
from models.finance import Receipt
from models.hotel import Guest, Reservation, Unit, LIVE_RESERVATION_STATUSES
from models.locks import AccessKey, SmartLock
from models.user import User
from services.access_service import AccessKeyService
from services.rate_service import RateService
from utils import task_engine
from utils.billing_engine import money, reservation_total, _safe_decimal
from utils.logging_utils import log_event
from utils.notifier import notify_booking_event
from utils.timezone import get_hotel_today, hotel_datetime_to_utc


class ReservationConflictError(ValueError):
    """The unit already has a live booking in the requested dates"""

    def __init__(self, conflicts: List[Reservation]):
        self.conflicts = conflicts
        ids = ", ".join(str(r.id) for r in conflicts)
        super().__init__(f"Unit is already booked for these dates (reservations: {ids})")


class AvailabilityService:

    @staticmethod
    def find_conflicts(
        db: Session,
        unit_id: int,
        check_in: date,
        check_out: date,
        exclude_id: Optional[int] = None,
    ) -> List[Reservation]:
        """Live bookings on the unit whose [check_in, check_out) overlaps the range"""
        query = db.query(Reservation).filter(
            Reservation.unit_id == unit_id,
            Reservation.status.in_(LIVE_RESERVATION_STATUSES),
            Reservation.check_in < check_out,
            Reservation.check_out > check_in,
        )
        if exclude_id is not None:
            query = query.filter(Reservation.id != exclude_id)
        return query.order_by(Reservation.check_in).all()

    @staticmethod
    def ensure_available(db: Session, unit_id: int, check_in: date, check_out: date, exclude_id: Optional[int] = None):
        conflicts = AvailabilityService.find_conflicts(db, unit_id, check_in, check_out, exclude_id)
        if conflicts:
            raise ReservationConflictError(conflicts)


class GuestService:

    @staticmethod
    def find_or_create(
        db: Session,
        hotel_id: int,
        full_name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Guest:
        """
        Matches an existing guest of the hotel by email, case insensitive.
        Otherwise adds a new one with the first word as first name. Does not commit.
        """
        if email:
            existing = db.query(Guest).filter(
                Guest.hotel_id == hotel_id,
                func.lower(Guest.email) == email.strip().lower(),
            ).order_by(Guest.id).first()
            if existing:
                if phone and not existing.phone:
                    existing.phone = phone
                return existing

        parts = (full_name or "").split()
        guest = Guest(
            hotel_id=hotel_id,
            first_name=parts[0] if parts else None,
            last_name=" ".join(parts[1:]) or None,
            email=email.strip().lower() if email else None,
            phone=phone,
        )
        db.add(guest)
        return guest


class ReservationService:

    @staticmethod
    def create(
        db: Session,
        unit: Unit,
        check_in: date,
        check_out: date,
        guest: Optional[Guest] = None,
        price_per_night=None,
        total_amount=None,
        **fields,
    ) -> Reservation:
        """
        Builds a booking on the unit after the availability check.
        With neither price nor total given, the total is the sum of the nightly
        rates and the price their average. A price alone gives nights x price.
        A booking that starts today marks the unit occupied.
        """
        if check_out <= check_in:
            raise ValueError("check_out must be after check_in")
        AvailabilityService.ensure_available(db, unit.id, check_in, check_out)

        if price_per_night is None and total_amount is None:
            total = money(RateService.quote(db, unit, check_in, check_out)["total"])
            price = money(total / (check_out - check_in).days)
        else:
            price = money(unit.price_per_night if price_per_night is None else price_per_night)
            total = reservation_total(check_in, check_out, price) if total_amount is None else money(total_amount)

        reservation = Reservation(
            hotel_id=unit.hotel_id,
            unit_id=unit.id,
            check_in=check_in,
            check_out=check_out,
            price_per_night=price,
            total_amount=total,
            paid_amount=money(0),
            **fields,
        )
        reservation.unit = unit
        reservation.guest = guest
        db.add(reservation)
        db.flush()

        if reservation.source != "block" and check_in == get_hotel_today() and unit.status == "available":
            unit.status = "occupied"

        if reservation.source != "block":
            notify_booking_event(db, reservation, "created")
        return reservation

    @staticmethod
    def update(db: Session, reservation: Reservation, changes: dict, unit: Optional[Unit] = None) -> Reservation:
        """Applies edits, re-checking availability when dates or unit move"""
        if not reservation.is_editable():
            raise ValueError(f"Reservation in status '{reservation.status}' cannot be edited")

        check_in = changes.get("check_in", reservation.check_in)
        check_out = changes.get("check_out", reservation.check_out)
        if check_out <= check_in:
            raise ValueError("check_out must be after check_in")

        target_unit = unit or reservation.unit
        if reservation.status == "checked_in" and target_unit.id != reservation.unit_id:
            raise ValueError("A checked-in guest cannot be moved through an edit")

        if (check_in, check_out, target_unit.id) != (reservation.check_in, reservation.check_out, reservation.unit_id):
            AvailabilityService.ensure_available(db, target_unit.id, check_in, check_out, exclude_id=reservation.id)

        today = get_hotel_today()
        previous_unit = reservation.unit
        held_today = reservation.status != "checked_in" and reservation.check_in <= today < reservation.check_out

        repriced = any(key in changes for key in ("check_in", "check_out", "price_per_night"))
        for field, value in changes.items():
            if field in ("price_per_night", "total_amount"):
                value = money(value)
            setattr(reservation, field, value)
        if unit is not None:
            reservation.unit = unit

        if repriced and "total_amount" not in changes:
            reservation.total_amount = reservation_total(
                reservation.check_in, reservation.check_out, reservation.price_per_night
            )

        if reservation.status != "checked_in" and reservation.source != "block":
            moved_off = target_unit.id != previous_unit.id or not reservation.check_in <= today < reservation.check_out
            if held_today and moved_off and previous_unit.status == "occupied":
                db.flush()
                BookingLifecycleService.release_unit(db, previous_unit, reservation.id, today)
            if reservation.check_in == today and target_unit.status == "available":
                target_unit.status = "occupied"
        return reservation


class BookingLifecycleService:
    """Status transitions of a booking and their side effects on units, tasks, keys and notifications"""

    @staticmethod
    def release_unit(db: Session, unit: Optional[Unit], reservation_id: int, today: Optional[date] = None) -> bool:
        """
        Puts an occupied unit back to available once the booking stops holding it.
        Another booking in house, or live and covering today, keeps it occupied.
        """
        if not unit or unit.status != "occupied":
            return False
        today = today or get_hotel_today()
        holders = db.query(Reservation).filter(
            Reservation.unit_id == unit.id,
            Reservation.id != reservation_id,
            or_(
                Reservation.status == "checked_in",
                and_(
                    Reservation.status.in_(("pending", "confirmed")),
                    Reservation.source != "block",
                    Reservation.check_in <= today,
                    Reservation.check_out > today,
                ),
            ),
        ).count()
        if holders:
            return False
        unit.status = "available"
        return True

    @staticmethod
    def check_in(db: Session, reservation: Reservation, username: str = "system") -> Tuple[bool, str]:
        if reservation.status not in ("confirmed", "pending"):
            return False, f"Only confirmed reservations can check in (status: {reservation.status})"

        reservation.status = "checked_in"
        reservation.checked_in_at = datetime.utcnow()
        if reservation.unit:
            reservation.unit.status = "occupied"

        task_engine.generate_checkin_task(reservation, db)
        notify_booking_event(db, reservation, "checked_in")
        log_event("reservations", username, "Check-in", f"reservation_id={reservation.id} unit_id={reservation.unit_id}")
        return True, "Guest checked in"

    @staticmethod
    def check_out(db: Session, reservation: Reservation, username: str = "system") -> Tuple[bool, str]:
        if reservation.status != "checked_in":
            return False, f"Only checked-in reservations can check out (status: {reservation.status})"

        reservation.status = "checked_out"
        reservation.checked_out_at = datetime.utcnow()
        if reservation.unit:
            reservation.unit.status = "available"

        AccessKeyService.revoke_for_reservation(db, reservation)
        task_engine.generate_checkout_task(reservation, db)
        notify_booking_event(db, reservation, "checked_out")
        log_event("reservations", username, "Check-out", f"reservation_id={reservation.id} balance={reservation.balance}")
        return True, "Guest checked out"

    @staticmethod
    def cancel(db: Session, reservation: Reservation, reason: Optional[str] = None, username: str = "system") -> Tuple[bool, str]:
        if reservation.status in ("checked_out", "cancelled"):
            return False, f"Reservation in status '{reservation.status}' cannot be cancelled"

        today = get_hotel_today()
        held_unit = reservation.status == "checked_in" or (
            reservation.source != "block" and reservation.check_in <= today
        )
        reservation.status = "cancelled"
        reservation.cancelled_at = datetime.utcnow()
        reservation.cancel_reason = reason

        if held_unit:
            BookingLifecycleService.release_unit(db, reservation.unit, reservation.id, today)

        AccessKeyService.revoke_for_reservation(db, reservation)
        notify_booking_event(db, reservation, "cancelled")
        log_event("reservations", username, "Cancel", f"reservation_id={reservation.id} reason={reason or ''}")
        return True, "Reservation cancelled"

    @staticmethod
    def mark_no_show(db: Session, reservation: Reservation, today: Optional[date] = None, username: str = "system") -> Tuple[bool, str]:
        today = today or get_hotel_today()
        if reservation.status != "confirmed":
            return False, f"Only confirmed reservations can be marked as no-show (status: {reservation.status})"
        if reservation.check_in > today:
            return False, "The arrival date has not been reached yet"

        reservation.status = "no_show"
        BookingLifecycleService.release_unit(db, reservation.unit, reservation.id, today)
        AccessKeyService.revoke_for_reservation(db, reservation)
        log_event("reservations", username, "No-show", f"reservation_id={reservation.id}")
        return True, "Reservation marked as no-show"


class PaymentService:

    @staticmethod
    def record_payment(
        db: Session,
        reservation: Reservation,
        amount,
        method: str = "cash",
        paid_on: Optional[date] = None,
        notes: Optional[str] = None,
        user: Optional[User] = None,
    ) -> Receipt:
        """Income receipt linked to the booking; raises paid_amount"""
        if reservation.status in ("cancelled", "no_show"):
            raise ValueError(f"Cannot take a payment for a reservation in status '{reservation.status}'")
        amount_dec = money(amount)
        if amount_dec <= 0:
            raise ValueError("Payment amount must be positive")

        receipt = Receipt(
            hotel_id=reservation.hotel_id,
            date=paid_on or get_hotel_today(),
            type="income",
            amount=amount_dec,
            method=method,
            reservation_id=reservation.id,
            notes=notes,
            created_by_id=user.id if user else None,
        )
        db.add(receipt)
        reservation.paid_amount = money(_safe_decimal(reservation.paid_amount) + amount_dec)
        return receipt

    @staticmethod
    def apply_receipt(reservation: Optional[Reservation], receipt: Receipt, reverse: bool = False) -> None:
        """Keeps paid_amount in step with the booking's income receipts"""
        if reservation is None or receipt.type != "income":
            return
        delta = money(receipt.amount)
        if reverse:
            delta = -delta
        reservation.paid_amount = money(_safe_decimal(reservation.paid_amount) + delta)


class AccessGrantService:

    @staticmethod
    def default_window(reservation: Reservation) -> Tuple[datetime, datetime]:
        """From check-in afternoon to check-out noon, hotel time"""
        return (
            hotel_datetime_to_utc(reservation.check_in, CHECKIN_HOUR),
            hotel_datetime_to_utc(reservation.check_out, CHECKOUT_HOUR),
        )

    @staticmethod
    def generate_for_reservation(
        db: Session,
        reservation: Reservation,
        valid_from: Optional[datetime] = None,
        valid_to: Optional[datetime] = None,
        username: str = "system",
    ) -> AccessKey:
        if reservation.status not in ("confirmed", "checked_in", "pending"):
            raise ValueError(f"Cannot generate access for a reservation in status '{reservation.status}'")

        lock = db.query(SmartLock).filter(SmartLock.unit_id == reservation.unit_id).first()
        if not lock:
            raise LookupError("No smart lock is installed on this unit")

        default_from, default_to = AccessGrantService.default_window(reservation)
        key = AccessKeyService.issue(
            db,
            lock,
            valid_from or default_from,
            valid_to or default_to,
            reservation=reservation,
        )
        notify_booking_event(db, reservation, "access_generated")
        log_event("locks", username, "Generate reservation access", f"reservation_id={reservation.id} lock_id={lock.id}")
        return key
