from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from database import connection
from models.finance import Receipt
from models.hotel import Guest, Reservation, Unit
from models.locks import AccessKey
from models.user import User
from schemas.finance import ReceiptRead
from schemas.locks import AccessKeyRead
from schemas.reservations import (
    ReservationCreate,
    ReservationUpdate,
    ReservationRead,
    CancelRequest,
    PaymentCreate,
    GenerateAccessRequest,
)
from services.access_service import AccessKeyService
from services.reservation_service import (
    AccessGrantService,
    BookingLifecycleService,
    PaymentService,
    ReservationConflictError,
    ReservationService,
)
from utils.dependencies import get_current_user, get_owned, scope_hotel_ids
from utils.lock_adapter import AccessCodeExhaustedError, LockAdapterError
from utils.logging_utils import log_event, log_error
from utils.report_engine import map_reservation_status
from utils.timezone import get_hotel_today

router = APIRouter(prefix="/reservations", tags=["Reservations"])


# ===== HELPERS =====

def serialize_reservation(reservation: Reservation) -> ReservationRead:
    item = ReservationRead.model_validate(reservation)
    item.dashboard_status = map_reservation_status(
        reservation.status, reservation.total_amount, reservation.paid_amount
    )
    return item


def _get_reservation(db: Session, user: User, reservation_id: int) -> Reservation:
    return get_owned(db, user, Reservation, reservation_id, "Reservation not found")


def _commit(db: Session, user: User, action: str, detail: str = ""):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("reservations", user.username, action, f"{detail} error={e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{action} failed")


def _run_transition(db: Session, user: User, reservation: Reservation, action: str, transition) -> ReservationRead:
    ok, message = transition()
    if not ok:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)
    _commit(db, user, action, f"reservation_id={reservation.id}")
    db.refresh(reservation)
    return serialize_reservation(reservation)


# ===== RESERVATIONS =====

@router.get("", response_model=List[ReservationRead])
def list_reservations(
    hotel_id: Optional[int] = Query(None),
    reservation_status: Optional[str] = Query(None, alias="status"),
    unit_id: Optional[int] = Query(None),
    guest_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Lists bookings; a date range keeps the bookings that overlap it"""
    query = (
        db.query(Reservation)
        .options(joinedload(Reservation.guest), joinedload(Reservation.unit))
        .filter(Reservation.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id)))
    )
    if reservation_status:
        query = query.filter(Reservation.status == reservation_status)
    if unit_id:
        query = query.filter(Reservation.unit_id == unit_id)
    if guest_id:
        query = query.filter(Reservation.guest_id == guest_id)
    # only stays with a night on or after date_from
    if date_from:
        query = query.filter(Reservation.check_out > date_from)
    if date_to:
        query = query.filter(Reservation.check_in <= date_to)

    reservations = query.order_by(Reservation.check_in.desc(), Reservation.id.desc()).all()
    return [serialize_reservation(r) for r in reservations]


@router.get("/{reservation_id}", response_model=ReservationRead)
def get_reservation(
    reservation_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return serialize_reservation(_get_reservation(db, current_user, reservation_id))


@router.post("", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
def create_reservation(
    payload: ReservationCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    unit = get_owned(db, current_user, Unit, payload.unit_id, "Unit not found")
    if unit.status in ("maintenance", "out_of_service"):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Unit is out of service")

    guest = None
    if payload.guest_id is not None:
        guest = get_owned(db, current_user, Guest, payload.guest_id, "Guest not found")
        if guest.hotel_id != unit.hotel_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Guest belongs to another hotel")
    elif payload.guest is not None:
        guest = Guest(hotel_id=unit.hotel_id, **payload.guest.model_dump())
        db.add(guest)

    try:
        reservation = ReservationService.create(
            db,
            unit,
            payload.check_in,
            payload.check_out,
            guest=guest,
            price_per_night=payload.price_per_night,
            total_amount=payload.total_amount,
            adults=payload.adults,
            children=payload.children,
            source=payload.source,
            status=payload.status,
            notes=payload.notes,
        )
    except ReservationConflictError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        log_error("reservations", current_user.username, "Create reservation", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the reservation")

    _commit(db, current_user, "Create reservation", f"unit_id={unit.id}")
    db.refresh(reservation)
    log_event(
        "reservations",
        current_user.username,
        "Create reservation",
        f"reservation_id={reservation.id} unit_id={unit.id} {reservation.check_in}->{reservation.check_out}",
    )
    return serialize_reservation(reservation)


@router.put("/{reservation_id}", response_model=ReservationRead)
def update_reservation(
    payload: ReservationUpdate,
    reservation_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    reservation = _get_reservation(db, current_user, reservation_id)
    changes = payload.model_dump(exclude_unset=True)

    unit = None
    if changes.get("unit_id") is not None and changes["unit_id"] != reservation.unit_id:
        unit = get_owned(db, current_user, Unit, changes["unit_id"], "Unit not found")
        if unit.hotel_id != reservation.hotel_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unit belongs to another hotel")
    if changes.get("guest_id") is not None:
        guest = get_owned(db, current_user, Guest, changes["guest_id"], "Guest not found")
        if guest.hotel_id != reservation.hotel_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Guest belongs to another hotel")

    try:
        ReservationService.update(db, reservation, changes, unit=unit)
    except ReservationConflictError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    _commit(db, current_user, "Update reservation", f"reservation_id={reservation_id}")
    db.refresh(reservation)
    log_event("reservations", current_user.username, "Update reservation", f"reservation_id={reservation_id} fields={sorted(changes)}")
    return serialize_reservation(reservation)


@router.delete("/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reservation(
    reservation_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Only bookings that never started (pending, cancelled, no-show) can be deleted"""
    reservation = _get_reservation(db, current_user, reservation_id)
    if reservation.status not in ("pending", "cancelled", "no_show"):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Reservation in status '{reservation.status}' cannot be deleted, cancel it first",
        )

    if reservation.status == "pending" and reservation.check_in <= get_hotel_today():
        BookingLifecycleService.release_unit(db, reservation.unit, reservation.id)
    db.delete(reservation)
    _commit(db, current_user, "Delete reservation", f"reservation_id={reservation_id}")
    log_event("reservations", current_user.username, "Delete reservation", f"reservation_id={reservation_id}")


# ===== LIFECYCLE =====

@router.post("/{reservation_id}/check-in", response_model=ReservationRead)
def check_in(
    reservation_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    reservation = _get_reservation(db, current_user, reservation_id)
    return _run_transition(
        db, current_user, reservation, "Check-in",
        lambda: BookingLifecycleService.check_in(db, reservation, current_user.username),
    )


@router.post("/{reservation_id}/check-out", response_model=ReservationRead)
def check_out(
    reservation_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    reservation = _get_reservation(db, current_user, reservation_id)
    return _run_transition(
        db, current_user, reservation, "Check-out",
        lambda: BookingLifecycleService.check_out(db, reservation, current_user.username),
    )


@router.post("/{reservation_id}/cancel", response_model=ReservationRead)
def cancel(
    reservation_id: int = Path(..., gt=0),
    payload: Optional[CancelRequest] = None,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    reservation = _get_reservation(db, current_user, reservation_id)
    return _run_transition(
        db, current_user, reservation, "Cancel",
        lambda: BookingLifecycleService.cancel(db, reservation, payload.reason if payload else None, current_user.username),
    )


@router.post("/{reservation_id}/no-show", response_model=ReservationRead)
def no_show(
    reservation_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    reservation = _get_reservation(db, current_user, reservation_id)
    return _run_transition(
        db, current_user, reservation, "No-show",
        lambda: BookingLifecycleService.mark_no_show(db, reservation, username=current_user.username),
    )


# ===== PAYMENTS =====

@router.get("/{reservation_id}/payments", response_model=List[ReceiptRead])
def list_payments(
    reservation_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    reservation = _get_reservation(db, current_user, reservation_id)
    return (
        db.query(Receipt)
        .filter(Receipt.reservation_id == reservation.id)
        .order_by(Receipt.date, Receipt.id)
        .all()
    )


@router.post("/{reservation_id}/payments", response_model=ReceiptRead, status_code=status.HTTP_201_CREATED)
def record_payment(
    payload: PaymentCreate,
    reservation_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    reservation = _get_reservation(db, current_user, reservation_id)
    try:
        receipt = PaymentService.record_payment(
            db,
            reservation,
            payload.amount,
            method=payload.method,
            paid_on=payload.date,
            notes=payload.notes,
            user=current_user,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    _commit(db, current_user, "Record payment", f"reservation_id={reservation_id}")
    db.refresh(receipt)
    log_event(
        "payments",
        current_user.username,
        "Record payment",
        f"reservation_id={reservation_id} amount={payload.amount} balance={reservation.balance}",
    )
    return receipt


# ===== ACCESS =====

@router.get("/{reservation_id}/access-keys", response_model=List[AccessKeyRead])
def list_access_keys(
    reservation_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    reservation = _get_reservation(db, current_user, reservation_id)
    keys = (
        db.query(AccessKey)
        .filter(AccessKey.reservation_id == reservation.id)
        .order_by(AccessKey.created_at.desc(), AccessKey.id.desc())
        .all()
    )
    if AccessKeyService.refresh_expired(keys):
        _commit(db, current_user, "Expire access keys", f"reservation_id={reservation_id}")
    return keys


@router.post("/{reservation_id}/generate-access", response_model=AccessKeyRead, status_code=status.HTTP_201_CREATED)
def generate_access(
    reservation_id: int = Path(..., gt=0),
    payload: Optional[GenerateAccessRequest] = None,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    payload = payload or GenerateAccessRequest()
    reservation = _get_reservation(db, current_user, reservation_id)
    try:
        key = AccessGrantService.generate_for_reservation(
            db, reservation, payload.valid_from, payload.valid_to, current_user.username
        )
    except LookupError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AccessCodeExhaustedError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except LockAdapterError as e:
        db.rollback()
        log_error("locks", current_user.username, "Generate access", str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    _commit(db, current_user, "Generate access", f"reservation_id={reservation_id}")
    db.refresh(key)
    return key
