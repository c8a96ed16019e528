from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

from schemas.reservations import ReservationRead
from schemas.units import UnitRead


class DashboardRead(BaseModel):
    total_reservations: int
    occupied_units: int
    vacant_units: int
    out_of_service_units: int
    revenue: float
    recent_reservations: List[ReservationRead]
    units: List[UnitRead]


class ReportPeriod(BaseModel):
    from_: str = Field(..., alias="from")
    to: str
    days: int

    model_config = ConfigDict(populate_by_name=True)


class ReportMetrics(BaseModel):
    total_revenue: float
    total_bookings: int
    completed_bookings: int
    room_nights: int
    occupancy_rate: int
    adr: float
    revpar: float


class ReportBreakdown(BaseModel):
    by_source: Dict[str, int]
    daily_revenue: Dict[str, float]


class ReportRead(BaseModel):
    period: ReportPeriod
    metrics: ReportMetrics
    breakdown: ReportBreakdown


class RevenuePoint(BaseModel):
    date: str
    revenue: float
    expenses: float


class ChannelShare(BaseModel):
    source: str
    bookings: int
    percentage: int


class OccupancyPoint(BaseModel):
    month: str
    rate: int


class OverviewStats(BaseModel):
    total_revenue: float
    total_bookings: int
    occupancy_rate: int
    average_occupancy: int
    adr: float


class OverviewRead(BaseModel):
    revenue_vs_expenses: List[RevenuePoint]
    channel_distribution: List[ChannelShare]
    occupancy_trend: List[OccupancyPoint]
    stats: OverviewStats
