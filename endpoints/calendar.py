from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from database import connection
from models.hotel import Reservation, Unit
from models.user import User
from schemas.reservations import CalendarBlockCreate, CalendarRead, CalendarUnit, ReservationRead
from services.reservation_service import ReservationConflictError, ReservationService
from endpoints.reservations import serialize_reservation
from utils.dependencies import get_current_user, get_owned, scope_hotel_ids
from utils.logging_utils import log_event, log_error
from utils.timezone import get_hotel_today

router = APIRouter(prefix="/calendar", tags=["Calendar"])


@router.get("", response_model=CalendarRead)
def get_calendar(
    hotel_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Units and the non-cancelled bookings overlapping the range (default: next 30 days)"""
    date_from = date_from or get_hotel_today()
    date_to = date_to or (date_from + timedelta(days=30))
    if date_to < date_from:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="'to' must not be before 'from'")

    hotel_ids = scope_hotel_ids(db, current_user, hotel_id)
    units = db.query(Unit).filter(Unit.hotel_id.in_(hotel_ids)).order_by(Unit.number).all()
    reservations = (
        db.query(Reservation)
        .options(joinedload(Reservation.guest), joinedload(Reservation.unit))
        .filter(
            Reservation.hotel_id.in_(hotel_ids),
            Reservation.status != "cancelled",
            Reservation.check_in <= date_to,
            # departures on the first day stay on the grid
            Reservation.check_out >= date_from,
        )
        .order_by(Reservation.check_in)
        .all()
    )
    return CalendarRead(
        date_from=date_from,
        date_to=date_to,
        units=[CalendarUnit.model_validate(u) for u in units],
        reservations=[serialize_reservation(r) for r in reservations],
    )


@router.post("/block", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
def block_dates(
    payload: CalendarBlockCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Blocks a unit for a date range with a zero-priced booking"""
    unit = get_owned(db, current_user, Unit, payload.unit_id, "Unit not found")
    try:
        block = ReservationService.create(
            db,
            unit,
            payload.from_date,
            payload.to_date,
            price_per_night=0,
            total_amount=0,
            adults=0,
            children=0,
            source="block",
            status="confirmed",
            notes=payload.reason or "Blocked",
        )
        db.commit()
    except ReservationConflictError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        log_error("calendar", current_user.username, "Block dates", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not block the dates")

    db.refresh(block)
    log_event("calendar", current_user.username, "Block dates", f"unit_id={unit.id} {payload.from_date}->{payload.to_date}")
    return serialize_reservation(block)
