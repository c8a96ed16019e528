from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import connection
from models.hotel import Unit, UnitRate
from models.user import User
from schemas.rates import AvailabilityRead, DayAvailability, RateRangeUpdate, RateUpdate
from services.rate_service import MAX_GRID_DAYS, RateService, date_range
from utils.dependencies import get_current_user, get_owned, scope_hotel_ids
from utils.logging_utils import log_event, log_error
from utils.timezone import get_hotel_today

router = APIRouter(prefix="/availability", tags=["Availability"])

DEFAULT_GRID_DAYS = 14


# ===== HELPERS =====

def _commit(db: Session, user: User, action: str, detail: str = ""):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("availability", user.username, action, f"{detail} error={e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{action} failed")


def _unit_days(db: Session, unit: Unit, start: date, end: date) -> List[DayAvailability]:
    return RateService.grid(db, [unit], start, end)[0]["days"]


# ===== GRID =====

@router.get("", response_model=AvailabilityRead)
def get_availability(
    hotel_id: Optional[int] = Query(None),
    unit_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Price and availability per unit and date, two weeks from today by default"""
    date_from = date_from or get_hotel_today()
    date_to = date_to or date_from + timedelta(days=DEFAULT_GRID_DAYS - 1)

    query = db.query(Unit).filter(Unit.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id)))
    if unit_id:
        query = query.filter(Unit.id == unit_id)
    units = query.order_by(Unit.number).all()

    try:
        rows = RateService.grid(db, units, date_from, date_to)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"date_from": date_from, "date_to": date_to, "units": rows}


# ===== RATES =====

@router.put("/{unit_id}/{day}", response_model=DayAvailability)
def set_day_rate(
    payload: RateUpdate,
    unit_id: int = Path(..., gt=0),
    day: date = Path(...),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    unit = get_owned(db, current_user, Unit, unit_id, "Unit not found")
    rate = RateService.set_rate(db, unit, day, price=payload.price, available=payload.available)
    _commit(db, current_user, "Set rate", f"unit_id={unit.id} date={day}")
    log_event(
        "availability",
        current_user.username,
        "Set rate",
        f"unit_id={unit.id} date={day} price={rate.price} available={rate.is_available}",
    )
    return _unit_days(db, unit, day, day)[0]


@router.put("/{unit_id}", response_model=List[DayAvailability])
def set_range_rate(
    payload: RateRangeUpdate,
    unit_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Same price and availability on every date from from_date to to_date, both included"""
    unit = get_owned(db, current_user, Unit, unit_id, "Unit not found")
    days = date_range(payload.from_date, payload.to_date)
    for day in days:
        RateService.set_rate(db, unit, day, price=payload.price, available=payload.available)
    _commit(db, current_user, "Set rates", f"unit_id={unit.id}")
    log_event(
        "availability",
        current_user.username,
        "Set rates",
        f"unit_id={unit.id} {payload.from_date}->{payload.to_date} days={len(days)}",
    )

    result = []
    for offset in range(0, len(days), MAX_GRID_DAYS):
        chunk = days[offset:offset + MAX_GRID_DAYS]
        result.extend(_unit_days(db, unit, chunk[0], chunk[-1]))
    return result


@router.delete("/{unit_id}/{day}", status_code=status.HTTP_204_NO_CONTENT)
def reset_day_rate(
    unit_id: int = Path(..., gt=0),
    day: date = Path(...),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Drops the override: the date sells at the unit's base price again"""
    unit = get_owned(db, current_user, Unit, unit_id, "Unit not found")
    rate = db.query(UnitRate).filter(UnitRate.unit_id == unit.id, UnitRate.date == day).first()
    if not rate:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No rate set for this date")
    db.delete(rate)
    _commit(db, current_user, "Reset rate", f"unit_id={unit.id} date={day}")
    log_event("availability", current_user.username, "Reset rate", f"unit_id={unit.id} date={day}")
