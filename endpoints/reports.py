"""
Reporting endpoints: dashboard KPIs, period report and overview charts
The numbers come from utils/report_engine, this module only loads the rows.
"""
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, joinedload

from database import connection
from models.finance import Receipt
from models.hotel import Reservation, Unit
from models.user import User
from schemas.reports import DashboardRead, ReportRead, OverviewRead
from endpoints.reservations import serialize_reservation
from endpoints.units import serialize_units
from utils import report_engine
from utils.dependencies import get_current_user, scope_hotel_ids
from utils.timezone import get_hotel_today

router = APIRouter(prefix="/reports", tags=["Reports"])

RECENT_RESERVATIONS = 5


@router.get("/dashboard", response_model=DashboardRead)
def dashboard(
    hotel_id: Optional[int] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    hotel_ids = scope_hotel_ids(db, current_user, hotel_id)
    today = get_hotel_today()

    units = db.query(Unit).filter(Unit.hotel_id.in_(hotel_ids)).order_by(Unit.number).all()
    reservations = (
        db.query(Reservation)
        .options(joinedload(Reservation.guest), joinedload(Reservation.unit))
        .filter(Reservation.hotel_id.in_(hotel_ids))
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
        .all()
    )

    kpis = report_engine.dashboard_kpis(reservations, units, today)
    return DashboardRead(
        **kpis,
        recent_reservations=[serialize_reservation(r) for r in reservations[:RECENT_RESERVATIONS]],
        units=serialize_units(db, units),
    )


@router.get("/generate", response_model=ReportRead)
def generate(
    hotel_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Occupancy, ADR and RevPAR for the range (default: last 30 days)"""
    try:
        start, end = report_engine.default_range(date_from, date_to, get_hotel_today())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    hotel_ids = scope_hotel_ids(db, current_user, hotel_id)
    units_count = db.query(Unit).filter(Unit.hotel_id.in_(hotel_ids)).count()
    reservations = db.query(Reservation).filter(
        Reservation.hotel_id.in_(hotel_ids),
        Reservation.check_in >= start,
        Reservation.check_out <= end,
    ).all()
    return report_engine.generate_report(reservations, units_count, start, end)


@router.get("/overview", response_model=OverviewRead)
def overview(
    hotel_id: Optional[int] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    hotel_ids = scope_hotel_ids(db, current_user, hotel_id)
    today = get_hotel_today()
    units_count = db.query(Unit).filter(Unit.hotel_id.in_(hotel_ids)).count()

    reservations = db.query(Reservation).filter(Reservation.hotel_id.in_(hotel_ids)).all()
    receipts = db.query(Receipt).filter(
        Receipt.hotel_id.in_(hotel_ids),
        Receipt.date > today - timedelta(days=7),
        Receipt.date <= today,
    ).all()

    trend = report_engine.occupancy_trend(reservations, units_count, today)
    return {
        "revenue_vs_expenses": report_engine.revenue_vs_expenses(receipts, today),
        "channel_distribution": report_engine.channel_distribution(reservations),
        "occupancy_trend": trend,
        "stats": report_engine.overview_stats(reservations, trend, units_count),
    }
