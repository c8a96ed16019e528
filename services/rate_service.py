"""
Nightly rates and availability per unit and date
A unit sells at its base price unless a UnitRate row overrides the date.
A closed date (is_available false) takes no online booking.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from models.hotel import Reservation, Unit, UnitRate, LIVE_RESERVATION_STATUSES
from utils.billing_engine import money


MAX_GRID_DAYS = 92
SELLABLE_UNIT_STATUSES = ("available", "occupied")


def date_range(start: date, end: date) -> List[date]:
    """Every date from start to end, both included"""
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


class RateService:

    @staticmethod
    def overrides(db: Session, unit_ids: Iterable[int], start: date, end: date) -> Dict[tuple, UnitRate]:
        """(unit_id, date) -> override, for dates from start to end included"""
        unit_ids = list(unit_ids)
        if not unit_ids:
            return {}
        rows = db.query(UnitRate).filter(
            UnitRate.unit_id.in_(unit_ids),
            UnitRate.date >= start,
            UnitRate.date <= end,
        ).all()
        return {(row.unit_id, row.date): row for row in rows}

    @staticmethod
    def nightly_rates(db: Session, unit: Unit, check_in: date, check_out: date) -> List[dict]:
        """One entry per night of the stay with its price and whether the date is open"""
        nights = date_range(check_in, check_out - timedelta(days=1))
        if not nights:
            return []
        overrides = RateService.overrides(db, [unit.id], nights[0], nights[-1])
        result = []
        for night in nights:
            override = overrides.get((unit.id, night))
            result.append({
                "date": night,
                "price": float(money(override.price if override else unit.price_per_night)),
                "price_source": "override" if override else "base",
                "closed": bool(override and not override.is_available),
            })
        return result

    @staticmethod
    def quote(db: Session, unit: Unit, check_in: date, check_out: date) -> dict:
        """Total of the nightly prices; closed_dates lists the nights that cannot be sold"""
        nightly = RateService.nightly_rates(db, unit, check_in, check_out)
        total = money(sum((Decimal(str(night["price"])) for night in nightly), Decimal("0")))
        return {
            "unit_id": unit.id,
            "check_in": check_in,
            "check_out": check_out,
            "nights": len(nightly),
            "total": float(total),
            "closed_dates": [night["date"] for night in nightly if night["closed"]],
            "nightly": nightly,
        }

    @staticmethod
    def set_rate(db: Session, unit: Unit, day: date, price=None, available: Optional[bool] = None) -> UnitRate:
        """
        Creates or updates the override of one date. Does not commit.
        A price alone opens the date when positive and closes it at zero;
        availability alone keeps the current price.
        """
        rate = db.query(UnitRate).filter(UnitRate.unit_id == unit.id, UnitRate.date == day).first()
        if rate is None:
            rate = UnitRate(hotel_id=unit.hotel_id, unit_id=unit.id, date=day, price=money(unit.price_per_night))
            db.add(rate)
        if price is not None:
            rate.price = money(price)
        if available is not None:
            rate.is_available = available
        elif price is not None:
            rate.is_available = money(price) > 0
        return rate

    @staticmethod
    def grid(db: Session, units: List[Unit], start: date, end: date) -> List[dict]:
        """
        Price and availability of each unit on each date.
        A date is available when the unit is in service, the date is open
        and no live booking (blocks included) holds the night.
        """
        if end < start:
            raise ValueError("to must not be before from")
        if (end - start).days + 1 > MAX_GRID_DAYS:
            raise ValueError(f"The range is limited to {MAX_GRID_DAYS} days")

        days = date_range(start, end)
        unit_ids = [u.id for u in units]
        overrides = RateService.overrides(db, unit_ids, start, end)
        bookings = db.query(Reservation).filter(
            Reservation.unit_id.in_(unit_ids),
            Reservation.status.in_(LIVE_RESERVATION_STATUSES),
            Reservation.check_in <= end,
            Reservation.check_out > start,
        ).all() if unit_ids else []

        result = []
        for unit in units:
            unit_bookings = [b for b in bookings if b.unit_id == unit.id]
            in_service = unit.status in SELLABLE_UNIT_STATUSES
            cells = []
            for day in days:
                override = overrides.get((unit.id, day))
                holder = next((b for b in unit_bookings if b.check_in <= day < b.check_out), None)
                closed = bool(override and not override.is_available)
                cells.append({
                    "date": day,
                    "price": float(money(override.price if override else unit.price_per_night)),
                    "price_source": "override" if override else "base",
                    "closed": closed,
                    "reservation_id": holder.id if holder else None,
                    "available": in_service and not closed and holder is None,
                })
            result.append({
                "unit_id": unit.id,
                "number": unit.number,
                "name": unit.name,
                "status": unit.status,
                "base_price": float(money(unit.price_per_night)),
                "days": cells,
            })
        return result
