"""
Channel manager bookings
Bookings pushed by the channel manager arrive on a signed webhook and are
matched on their channel booking id, so a replayed call never books twice.
Nothing here commits: the webhook router owns the transaction.
"""

import hashlib
import hmac
from datetime import date
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from models.hotel import Hotel, Reservation, Unit
from schemas.channel import ChannelBookingEvent
from services.inbox_service import InboxService
from services.reservation_service import (
    AvailabilityService,
    BookingLifecycleService,
    GuestService,
    ReservationService,
)
from utils import task_engine
from utils.billing_engine import money
from utils.logging_utils import log_event


# OTAs that are also reservation sources; any other channel books as "channel"
OTA_SOURCES = ("booking", "airbnb", "expedia", "agoda")
OTA_MESSAGE_CHANNELS = ("booking", "airbnb")


class NoFreeUnitError(ValueError):
    """No unit of the hotel can take the stay"""


def sign_payload(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """HMAC-SHA256 hex digest of the raw body, optionally prefixed with 'sha256='"""
    if not signature or not secret:
        return False
    signature = signature.strip()
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    return hmac.compare_digest(sign_payload(body, secret), signature.lower())


class ChannelImportService:

    @staticmethod
    def pick_unit(db: Session, hotel_id: int, check_in: date, check_out: date) -> Unit:
        """First unit by number that is in service and free for the stay"""
        units = db.query(Unit).filter(
            Unit.hotel_id == hotel_id,
            Unit.status.in_(("available", "occupied")),
        ).order_by(Unit.number).all()
        for unit in units:
            if not AvailabilityService.find_conflicts(db, unit.id, check_in, check_out):
                return unit
        raise NoFreeUnitError("No unit is free for these dates")

    @staticmethod
    def apply(db: Session, event: ChannelBookingEvent) -> Tuple[str, Optional[Reservation]]:
        """
        Creates, updates or cancels the booking behind a channel event.
        Returns the action taken: created, updated, cancelled, unchanged or ignored.
        """
        hotel = db.get(Hotel, event.hotel_id)
        if hotel is None:
            raise LookupError("Hotel not found")

        existing = db.query(Reservation).filter(
            Reservation.hotel_id == hotel.id,
            Reservation.external_id == event.booking_id,
        ).first()
        if existing is not None:
            return ChannelImportService._apply_change(db, existing, event)

        if event.event == "booking_cancellation":
            # cancelled before it ever reached us
            return "ignored", None

        if event.unit_id is not None:
            unit = db.query(Unit).filter(Unit.id == event.unit_id, Unit.hotel_id == hotel.id).first()
            if unit is None:
                raise LookupError("Unit not found")
            if unit.status in ("maintenance", "out_of_service"):
                raise NoFreeUnitError("Unit is out of service")
        else:
            unit = ChannelImportService.pick_unit(db, hotel.id, event.check_in, event.check_out)

        guest = GuestService.find_or_create(db, hotel.id, event.guest.name, event.guest.email, event.guest.phone)
        ota = (event.ota or "").lower()
        nights = (event.check_out - event.check_in).days
        price = money(event.total_amount / nights) if event.total_amount is not None else None

        reservation = ReservationService.create(
            db,
            unit,
            event.check_in,
            event.check_out,
            guest=guest,
            price_per_night=price,
            total_amount=event.total_amount,
            adults=event.adults,
            children=event.children,
            source=ota if ota in OTA_SOURCES else "channel",
            status="confirmed",
            notes=event.notes,
            external_id=event.booking_id,
        )
        task_engine.generate_arrival_task(reservation, db)
        InboxService.post_message(
            db,
            guest,
            f"Booking {event.booking_id} received from {ota or 'the channel manager'}: "
            f"{unit.name}, {event.check_in.isoformat()} to {event.check_out.isoformat()}",
            sender="system",
            channel=ota if ota in OTA_MESSAGE_CHANNELS else "system",
            reservation=reservation,
        )
        log_event("webhooks", "channel", "Import booking", f"reservation_id={reservation.id} external_id={event.booking_id}")
        return "created", reservation

    @staticmethod
    def _apply_change(db: Session, reservation: Reservation, event: ChannelBookingEvent) -> Tuple[str, Reservation]:
        if event.event == "booking_cancellation":
            if reservation.status == "cancelled":
                return "unchanged", reservation
            ok, message = BookingLifecycleService.cancel(
                db, reservation, reason="Cancelled on the channel", username="channel"
            )
            if not ok:
                raise ValueError(message)
            return "cancelled", reservation

        if not reservation.is_editable():
            return "unchanged", reservation

        changes = {}
        if event.check_in != reservation.check_in:
            changes["check_in"] = event.check_in
        if event.check_out != reservation.check_out:
            changes["check_out"] = event.check_out
        if event.total_amount is not None and money(event.total_amount) != money(reservation.total_amount):
            changes["total_amount"] = event.total_amount

        unit = None
        if event.unit_id is not None and event.unit_id != reservation.unit_id:
            unit = db.query(Unit).filter(Unit.id == event.unit_id, Unit.hotel_id == reservation.hotel_id).first()
            if unit is None:
                raise LookupError("Unit not found")

        if not changes and unit is None:
            return "unchanged", reservation
        ReservationService.update(db, reservation, changes, unit=unit)
        log_event("webhooks", "channel", "Update booking", f"reservation_id={reservation.id} external_id={event.booking_id}")
        return "updated", reservation
