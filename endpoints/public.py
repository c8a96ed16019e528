"""
Public booking site: unit listing, quotes and online bookings, no login
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from config import RATE_LIMIT_PUBLIC_BOOKING
from database import connection
from models.hotel import Hotel, Unit
from schemas.public import PublicBookingCreate, PublicBookingRead, PublicUnitRead
from schemas.rates import QuoteRead
from services.rate_service import RateService, SELLABLE_UNIT_STATUSES
from services.reservation_service import (
    AvailabilityService,
    GuestService,
    ReservationConflictError,
    ReservationService,
)
from utils.logging_utils import log_event, log_error
from utils.rate_limiter import limiter
from utils.timezone import get_hotel_today

router = APIRouter(prefix="/public", tags=["Public"])


# ===== HELPERS =====

def _listed_units(db: Session):
    """Units of active hotels that are not in maintenance or out of service"""
    return (
        db.query(Unit)
        .join(Hotel, Unit.hotel_id == Hotel.id)
        .options(joinedload(Unit.hotel))
        .filter(Hotel.status == "active", Unit.status.in_(SELLABLE_UNIT_STATUSES))
    )


def _get_listed_unit(db: Session, unit_id: int) -> Unit:
    unit = _listed_units(db).filter(Unit.id == unit_id).first()
    if not unit:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unit not found")
    return unit


def _serialize_unit(unit: Unit, quote: Optional[dict] = None) -> PublicUnitRead:
    return PublicUnitRead(
        id=unit.id,
        hotel_id=unit.hotel_id,
        hotel_name=unit.hotel.name,
        city=unit.hotel.city,
        country=unit.hotel.country,
        name=unit.name,
        type=unit.type,
        floor=unit.floor,
        price_per_night=float(unit.price_per_night or 0),
        nights=quote["nights"] if quote else None,
        total=quote["total"] if quote else None,
    )


def _check_stay(check_in: date, check_out: date):
    if check_out <= check_in:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="check_out must be after check_in")
    if check_in < get_hotel_today():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="check_in is in the past")


def _bookable_quote(db: Session, unit: Unit, check_in: date, check_out: date) -> dict:
    quote = RateService.quote(db, unit, check_in, check_out)
    quote["available"] = not quote["closed_dates"] and not AvailabilityService.find_conflicts(
        db, unit.id, check_in, check_out
    )
    return quote


# ===== UNITS =====

@router.get("/units", response_model=List[PublicUnitRead])
def list_public_units(
    city: Optional[str] = Query(None),
    hotel_id: Optional[int] = Query(None),
    check_in: Optional[date] = Query(None),
    check_out: Optional[date] = Query(None),
    db: Session = Depends(connection.get_db),
):
    """With check_in and check_out only the units free for the stay are listed, with its total"""
    query = _listed_units(db)
    if hotel_id:
        query = query.filter(Unit.hotel_id == hotel_id)
    if city:
        query = query.filter(Hotel.city.ilike(city.strip()))
    units = query.order_by(Hotel.name, Unit.number).all()

    if check_in is None and check_out is None:
        return [_serialize_unit(unit) for unit in units]
    if check_in is None or check_out is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Send both check_in and check_out")
    _check_stay(check_in, check_out)

    result = []
    for unit in units:
        quote = _bookable_quote(db, unit, check_in, check_out)
        if quote["available"]:
            result.append(_serialize_unit(unit, quote))
    return result


@router.get("/units/{unit_id}", response_model=PublicUnitRead)
def get_public_unit(unit_id: int = Path(..., gt=0), db: Session = Depends(connection.get_db)):
    return _serialize_unit(_get_listed_unit(db, unit_id))


@router.get("/units/{unit_id}/quote", response_model=QuoteRead)
def quote_stay(
    unit_id: int = Path(..., gt=0),
    check_in: date = Query(...),
    check_out: date = Query(...),
    db: Session = Depends(connection.get_db),
):
    unit = _get_listed_unit(db, unit_id)
    _check_stay(check_in, check_out)
    return _bookable_quote(db, unit, check_in, check_out)


# ===== BOOKING =====

@router.post("/book", response_model=PublicBookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMIT_PUBLIC_BOOKING)
def book(
    request: Request,
    payload: PublicBookingCreate,
    db: Session = Depends(connection.get_db),
):
    """
    Books a stay from the public site.
    The booking waits as pending for the hotel to confirm; the total is the
    sum of the nightly rates and a closed date refuses the stay.
    """
    unit = _get_listed_unit(db, payload.unit_id)
    _check_stay(payload.check_in, payload.check_out)

    quote = RateService.quote(db, unit, payload.check_in, payload.check_out)
    if quote["closed_dates"]:
        closed = ", ".join(d.isoformat() for d in quote["closed_dates"])
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Not available on {closed}")

    guest_name = payload.guest_name.strip()
    try:
        guest = GuestService.find_or_create(db, unit.hotel_id, guest_name, payload.guest_email, payload.guest_phone)
        reservation = ReservationService.create(
            db,
            unit,
            payload.check_in,
            payload.check_out,
            guest=guest,
            total_amount=quote["total"],
            price_per_night=quote["total"] / quote["nights"],
            adults=payload.adults,
            children=payload.children,
            source="website",
            status="pending",
            notes=payload.notes or f"Online booking for {guest_name}",
        )
        db.commit()
    except ReservationConflictError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="The unit is not available for these dates")
    except SQLAlchemyError as e:
        db.rollback()
        log_error("public", payload.guest_email, "Online booking", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the booking")

    db.refresh(reservation)
    log_event(
        "public",
        payload.guest_email,
        "Online booking",
        f"reservation_id={reservation.id} unit_id={unit.id} {reservation.check_in}->{reservation.check_out}",
    )
    return PublicBookingRead(
        reservation_id=reservation.id,
        reference=f"RES-{reservation.id:05d}",
        status=reservation.status,
        hotel_name=unit.hotel.name,
        unit_name=unit.name,
        check_in=reservation.check_in,
        check_out=reservation.check_out,
        nights=reservation.nights,
        total_amount=float(reservation.total_amount),
    )
