from datetime import datetime, time
from typing import Optional

from sqlalchemy.orm import Session

from models.hotel import Reservation
from models.operations import Task


def _existing_task(db: Session, reservation: Reservation, origin: str) -> Optional[Task]:
    return db.query(Task).filter(
        Task.reservation_id == reservation.id,
        Task.origin == origin,
    ).first()


def generate_checkin_task(reservation: Reservation, db: Session) -> Task:
    """
    Creates the medium priority cleaning task that keeps the unit ready during
    the stay. Due on the check-out day. Idempotent per reservation, does not commit.
    """
    existing = _existing_task(db, reservation, "checkin_prep")
    if existing:
        return existing

    unit_label = reservation.unit.name if reservation.unit else f"#{reservation.unit_id}"
    task = Task(
        hotel_id=reservation.hotel_id,
        title=f"Prepare {unit_label} for {reservation.guest_name}",
        description=f"Guest checked in, stay until {reservation.check_out.isoformat()}",
        type="cleaning",
        unit_id=reservation.unit_id,
        reservation_id=reservation.id,
        due_date=datetime.combine(reservation.check_out, time.min),
        priority="medium",
        status="todo",
        origin="checkin_prep",
    )
    db.add(task)
    return task


def generate_arrival_task(reservation: Reservation, db: Session) -> Task:
    """
    Creates the task that readies the unit before an imported booking arrives.
    Due on the arrival day. Idempotent per reservation, does not commit.
    """
    existing = _existing_task(db, reservation, "arrival_prep")
    if existing:
        return existing

    unit_label = reservation.unit.name if reservation.unit else f"#{reservation.unit_id}"
    task = Task(
        hotel_id=reservation.hotel_id,
        title=f"Prepare {unit_label} for the arrival of {reservation.guest_name}",
        description=f"Booking {reservation.external_id or reservation.id}, arriving {reservation.check_in.isoformat()}",
        type="cleaning",
        unit_id=reservation.unit_id,
        reservation_id=reservation.id,
        due_date=datetime.combine(reservation.check_in, time.min),
        priority="medium",
        status="todo",
        origin="arrival_prep",
    )
    db.add(task)
    return task


def generate_checkout_task(reservation: Reservation, db: Session) -> Task:
    """
    Creates the high priority checkout cleaning task for the unit.
    A reservation only ever gets one; an existing task is returned unchanged.
    Does not commit, the caller owns the transaction.
    """
    existing = _existing_task(db, reservation, "checkout_cleaning")
    if existing:
        return existing

    unit_label = reservation.unit.name if reservation.unit else f"#{reservation.unit_id}"
    task = Task(
        hotel_id=reservation.hotel_id,
        title=f"Checkout cleaning: {unit_label}",
        description=f"{reservation.guest_name} checked out",
        type="cleaning",
        unit_id=reservation.unit_id,
        reservation_id=reservation.id,
        due_date=datetime.utcnow(),
        priority="high",
        status="todo",
        origin="checkout_cleaning",
    )
    db.add(task)
    return task


def apply_task_status(task: Task, status: str) -> None:
    """completed_at follows the status: set on completion, cleared when reopened"""
    if status == "completed" and task.status != "completed":
        task.completed_at = datetime.utcnow()
    elif status != "completed":
        task.completed_at = None
    task.status = status
