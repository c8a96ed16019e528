from datetime import date, datetime, time

import pytz

from config import HOTEL_TIMEZONE

# Centralized timezone configuration
HOTEL_TZ = pytz.timezone(HOTEL_TIMEZONE)


def get_hotel_now() -> datetime:
    """Returns current time in Hotel Timezone"""
    return datetime.now(HOTEL_TZ)


def get_hotel_today() -> date:
    """Returns today's date in Hotel Timezone"""
    return get_hotel_now().date()


def to_naive_utc(dt: datetime) -> datetime:
    """Stored timestamps are naive UTC"""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.utc).replace(tzinfo=None)


def hotel_datetime_to_utc(day: date, hour: int) -> datetime:
    """Builds a naive UTC datetime from a hotel-local date and hour"""
    local = HOTEL_TZ.localize(datetime.combine(day, time(hour=hour)))
    return local.astimezone(pytz.utc).replace(tzinfo=None)
