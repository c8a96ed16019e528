"""
Business services for bookings, rates, payments, access codes, the guest inbox
and channel manager imports
"""

from .access_service import AccessKeyService
from .rate_service import RateService
from .reservation_service import (
    AvailabilityService,
    GuestService,
    ReservationService,
    BookingLifecycleService,
    PaymentService,
    AccessGrantService,
    ReservationConflictError,
)
from .inbox_service import InboxService
from .channel_service import ChannelImportService

__all__ = [
    "AccessKeyService",
    "RateService",
    "AvailabilityService",
    "GuestService",
    "ReservationService",
    "BookingLifecycleService",
    "PaymentService",
    "AccessGrantService",
    "ReservationConflictError",
    "InboxService",
    "ChannelImportService",
]
