"""
Report Engine - dashboard KPIs, period reports and chart series

Pure functions over already-loaded rows; the routers do the querying.
"""

from calendar import monthrange
from collections import Counter, OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from utils.billing_engine import _safe_decimal, money


COMPLETED_STATUSES = ("checked_in", "checked_out")
NOT_OCCUPYING_STATUSES = ("cancelled", "no_show")


def map_reservation_status(status: str, total=None, paid=None) -> str:
    """Dashboard vocabulary: active | completed | cancelled | paid | pending | upcoming"""
    if status == "checked_out":
        return "completed"
    if status in ("cancelled", "no_show"):
        return "cancelled"

    total_dec = _safe_decimal(total)
    if total_dec > 0 and _safe_decimal(paid) >= total_dec:
        return "paid"

    if status in ("confirmed", "checked_in"):
        return "active"
    if status == "pending":
        return "pending"
    return "upcoming"


def unit_display_status(unit, reservations: Iterable, today: date) -> str:
    """occupied | vacant | out-of-service | departure-today | arrival-today"""
    if unit.status in ("maintenance", "out_of_service"):
        return "out-of-service"

    for reservation in reservations:
        if reservation.unit_id != unit.id:
            continue
        if reservation.status == "checked_in" and reservation.check_out == today:
            return "departure-today"
        if reservation.status == "confirmed" and reservation.check_in == today:
            return "arrival-today"

    if unit.status == "occupied":
        return "occupied"
    return "vacant"


def dashboard_kpis(reservations: List, units: List, today: date) -> dict:
    statuses = [unit_display_status(unit, reservations, today) for unit in units]
    revenue = sum(
        (_safe_decimal(r.total_amount) for r in reservations if r.status not in NOT_OCCUPYING_STATUSES),
        Decimal("0"),
    )
    return {
        "total_reservations": len(reservations),
        "occupied_units": sum(1 for s in statuses if s in ("occupied", "departure-today")),
        "vacant_units": sum(1 for s in statuses if s in ("vacant", "arrival-today")),
        "out_of_service_units": statuses.count("out-of-service"),
        "revenue": float(money(revenue)),
    }


# ========== PERIOD REPORT ==========

def generate_report(reservations: Iterable, units_count: int, start: date, end: date) -> dict:
    """
    Metrics for bookings that start on or after `start` and end on or before `end`.
    Only checked-in and checked-out bookings count as revenue.
    """
    in_range = [r for r in reservations if r.check_in >= start and r.check_out <= end]
    completed = [r for r in in_range if r.status in COMPLETED_STATUSES]

    total_revenue = sum((_safe_decimal(r.total_amount) for r in completed), Decimal("0"))
    room_nights = sum(max((r.check_out - r.check_in).days, 0) for r in completed)

    days = (end - start).days or 1
    available_nights = max(units_count, 1) * days

    occupancy_rate = round(room_nights / available_nights * 100) if available_nights else 0
    adr = money(total_revenue / room_nights) if room_nights else Decimal("0")
    revpar = money(total_revenue / available_nights) if available_nights else Decimal("0")

    daily_revenue: Dict[str, float] = {}
    for r in sorted(completed, key=lambda item: item.check_in):
        key = r.check_in.isoformat()
        daily_revenue[key] = float(money(_safe_decimal(daily_revenue.get(key)) + _safe_decimal(r.total_amount)))

    return {
        "period": {"from": start.isoformat(), "to": end.isoformat(), "days": days},
        "metrics": {
            "total_revenue": float(money(total_revenue)),
            "total_bookings": len(in_range),
            "completed_bookings": len(completed),
            "room_nights": room_nights,
            "occupancy_rate": occupancy_rate,
            "adr": float(adr),
            "revpar": float(revpar),
        },
        "breakdown": {
            "by_source": dict(Counter(r.source or "direct" for r in in_range)),
            "daily_revenue": daily_revenue,
        },
    }


# ========== OVERVIEW CHARTS ==========

def revenue_vs_expenses(receipts: Iterable, today: date, days: int = 7) -> List[dict]:
    """Income and expense receipts per day for the last `days` days, oldest first"""
    buckets = OrderedDict()
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        buckets[day] = {"revenue": Decimal("0"), "expenses": Decimal("0")}

    for receipt in receipts:
        bucket = buckets.get(receipt.date)
        if bucket is None:
            continue
        key = "revenue" if receipt.type == "income" else "expenses"
        bucket[key] += _safe_decimal(receipt.amount)

    return [
        {"date": day.isoformat(), "revenue": float(money(v["revenue"])), "expenses": float(money(v["expenses"]))}
        for day, v in buckets.items()
    ]


def channel_distribution(reservations: Iterable) -> List[dict]:
    counts = Counter(r.source or "direct" for r in reservations if r.status not in NOT_OCCUPYING_STATUSES)
    total = sum(counts.values())
    return [
        {"source": source, "bookings": count, "percentage": round(count / total * 100) if total else 0}
        for source, count in counts.most_common()
    ]


def _month_start(day: date, months_back: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def occupancy_trend(reservations: Iterable, units_count: int, today: date, months: int = 6) -> List[dict]:
    """
    Occupied unit-days over available unit-days for each of the last `months`
    months. A night belongs to the day it starts, so check_out is not occupied.
    """
    occupying = [r for r in reservations if r.status not in NOT_OCCUPYING_STATUSES]
    trend = []
    for back in range(months - 1, -1, -1):
        first = _month_start(today, back)
        days_in_month = monthrange(first.year, first.month)[1]
        last = first + timedelta(days=days_in_month)

        occupied = set()
        for r in occupying:
            day = max(r.check_in, first)
            stop = min(r.check_out, last)
            while day < stop:
                occupied.add((r.unit_id, day))
                day += timedelta(days=1)

        capacity = days_in_month * units_count
        rate = round(len(occupied) / capacity * 100) if capacity else 0
        trend.append({"month": first.strftime("%Y-%m"), "rate": rate})
    return trend


def overview_stats(reservations: List, trend: List[dict], units_count: int) -> dict:
    counted = [r for r in reservations if r.status not in NOT_OCCUPYING_STATUSES]
    revenue = sum((_safe_decimal(r.total_amount) for r in counted), Decimal("0"))
    nights = sum(max((r.check_out - r.check_in).days, 0) for r in counted)
    in_house = {r.unit_id for r in reservations if r.status == "checked_in"}
    average = round(sum(item["rate"] for item in trend) / len(trend)) if trend else 0
    return {
        "total_revenue": float(money(revenue)),
        "total_bookings": len(reservations),
        "occupancy_rate": round(len(in_house) / units_count * 100) if units_count else 0,
        "average_occupancy": average,
        "adr": float(money(revenue / nights)) if nights else 0.0,
    }


def default_range(start: Optional[date], end: Optional[date], today: date, days: int = 30):
    end = end or today
    start = start or (end - timedelta(days=days))
    if start > end:
        raise ValueError("'from' must not be after 'to'")
    return start, end
