"""
Notification helpers shared by the routers and the reservation lifecycle
"""
from typing import Optional

from sqlalchemy.orm import Session

from models.hotel import Reservation
from models.operations import Notification


NOTIFICATION_TYPES = ("info", "success", "warning", "error", "booking", "task", "payment", "system")

# event -> (title, message template, type)
BOOKING_EVENTS = {
    "created": ("New booking", "New booking for {guest} in {unit} from {check_in} to {check_out}", "booking"),
    "checked_in": ("Guest checked in", "{guest} checked in to {unit}", "success"),
    "checked_out": ("Guest checked out", "{guest} checked out of {unit}", "info"),
    "cancelled": ("Booking cancelled", "Booking for {guest} in {unit} was cancelled", "warning"),
    "access_generated": ("Access code generated", "Access code ready for {guest} in {unit}", "system"),
}


def create_notification(
    db: Session,
    hotel_id: int,
    title: str,
    message: str,
    type: str = "info",
    data: Optional[dict] = None,
    action_url: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Notification:
    """Adds a notification to the session. Does not commit."""
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")
    notification = Notification(
        hotel_id=hotel_id,
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        data=data or {},
        action_url=action_url,
    )
    db.add(notification)
    return notification


def notify_booking_event(db: Session, reservation: Reservation, event: str) -> Notification:
    if event not in BOOKING_EVENTS:
        raise ValueError(f"Unknown booking event: {event}")

    title, template, notification_type = BOOKING_EVENTS[event]
    message = template.format(
        guest=reservation.guest_name,
        unit=reservation.unit.name if reservation.unit else f"unit #{reservation.unit_id}",
        check_in=reservation.check_in.isoformat(),
        check_out=reservation.check_out.isoformat(),
    )
    return create_notification(
        db,
        hotel_id=reservation.hotel_id,
        title=title,
        message=message,
        type=notification_type,
        data={"booking_id": reservation.id, "event": event},
        action_url=f"/dashboard/reservations/{reservation.id}",
    )
