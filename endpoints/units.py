from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from database import connection
from models.hotel import Reservation, Unit, LIVE_RESERVATION_STATUSES
from models.user import User
from schemas.units import UnitCreate, UnitUpdate, UnitStatusUpdate, UnitRead
from utils.dependencies import get_current_user, get_owned, resolve_hotel_id, scope_hotel_ids
from utils.logging_utils import log_event, log_error
from utils.report_engine import unit_display_status
from utils.timezone import get_hotel_today

router = APIRouter(prefix="/units", tags=["Units"])


# ===== HELPERS =====

def serialize_units(db: Session, units: List[Unit]) -> List[UnitRead]:
    """Adds the dashboard display status, based on today's arrivals and departures"""
    if not units:
        return []
    today = get_hotel_today()
    todays = db.query(Reservation).filter(
        Reservation.unit_id.in_([u.id for u in units]),
        Reservation.status.in_(("confirmed", "checked_in")),
        (Reservation.check_in == today) | (Reservation.check_out == today),
    ).all()
    result = []
    for unit in units:
        item = UnitRead.model_validate(unit)
        item.display_status = unit_display_status(unit, todays, today)
        result.append(item)
    return result


def _ensure_number_free(db: Session, hotel_id: int, number: str, exclude_id: Optional[int] = None):
    query = db.query(Unit).filter(Unit.hotel_id == hotel_id, Unit.number == number)
    if exclude_id is not None:
        query = query.filter(Unit.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Unit number {number} already exists")


# ===== UNITS =====

@router.get("", response_model=List[UnitRead])
def list_units(
    hotel_id: Optional[int] = Query(None),
    unit_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Unit).filter(Unit.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id)))
    if unit_status:
        query = query.filter(Unit.status == unit_status)
    return serialize_units(db, query.order_by(Unit.number).all())


@router.get("/{unit_id}", response_model=UnitRead)
def get_unit(
    unit_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    unit = get_owned(db, current_user, Unit, unit_id, "Unit not found")
    return serialize_units(db, [unit])[0]


@router.post("", response_model=UnitRead, status_code=status.HTTP_201_CREATED)
def create_unit(
    payload: UnitCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    hotel_id = resolve_hotel_id(db, current_user, payload.hotel_id)
    _ensure_number_free(db, hotel_id, payload.number)

    try:
        data = payload.model_dump(exclude={"hotel_id"})
        unit = Unit(hotel_id=hotel_id, **data)
        db.add(unit)
        db.commit()
        db.refresh(unit)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Unit number {payload.number} already exists")
    except SQLAlchemyError as e:
        db.rollback()
        log_error("units", current_user.username, "Create unit", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the unit")

    log_event("units", current_user.username, "Create unit", f"unit_id={unit.id} number={unit.number}")
    return serialize_units(db, [unit])[0]


@router.put("/{unit_id}", response_model=UnitRead)
def update_unit(
    payload: UnitUpdate,
    unit_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    unit = get_owned(db, current_user, Unit, unit_id, "Unit not found")
    data = payload.model_dump(exclude_unset=True)
    if data.get("number") and data["number"] != unit.number:
        _ensure_number_free(db, unit.hotel_id, data["number"], exclude_id=unit.id)

    try:
        for field, value in data.items():
            setattr(unit, field, value)
        db.commit()
        db.refresh(unit)
    except SQLAlchemyError as e:
        db.rollback()
        log_error("units", current_user.username, "Update unit", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update the unit")

    log_event("units", current_user.username, "Update unit", f"unit_id={unit_id}")
    return serialize_units(db, [unit])[0]


@router.patch("/{unit_id}/status", response_model=UnitRead)
def set_unit_status(
    payload: UnitStatusUpdate,
    unit_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    unit = get_owned(db, current_user, Unit, unit_id, "Unit not found")
    previous = unit.status
    try:
        unit.status = payload.status
        db.commit()
        db.refresh(unit)
    except SQLAlchemyError as e:
        db.rollback()
        log_error("units", current_user.username, "Set unit status", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update the unit status")

    log_event("units", current_user.username, "Set unit status", f"unit_id={unit_id} {previous}->{payload.status}")
    return serialize_units(db, [unit])[0]


@router.delete("/{unit_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_unit(
    unit_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    unit = get_owned(db, current_user, Unit, unit_id, "Unit not found")

    live = db.query(Reservation).filter(
        Reservation.unit_id == unit_id,
        Reservation.status.in_(LIVE_RESERVATION_STATUSES),
    ).count()
    if live:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete: the unit has {live} active reservation(s)",
        )
    # past stays keep feeding invoices and reports
    history = db.query(Reservation).filter(Reservation.unit_id == unit_id).count()
    if history:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete: the unit has {history} past reservation(s), set it out of service instead",
        )

    try:
        if unit.smart_lock:
            db.delete(unit.smart_lock)
        db.delete(unit)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete: the unit still has reservation history",
        )
    except SQLAlchemyError as e:
        db.rollback()
        log_error("units", current_user.username, "Delete unit", str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not delete the unit")

    log_event("units", current_user.username, "Delete unit", f"unit_id={unit_id}")
