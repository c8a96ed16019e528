"""
Package initialization for models.
Exposes every model class so that SQLAlchemy (Base.metadata)
registers all tables when 'models' is imported.
"""

# 1. Accounts
from .user import User, RevokedToken

# 2. Inventory and bookings
from .hotel import Hotel, Unit, UnitRate, Guest, Reservation

# 3. Money
from .finance import Receipt, Invoice, PaymentLink, OwnerStatement

# 4. Smart locks
from .locks import SmartLock, AccessKey

# 5. Operations
from .operations import Task, Notification

# 6. Inbox and channel manager
from .messaging import Message, WebhookLog

__all__ = [
    "User",
    "RevokedToken",
    "Hotel",
    "Unit",
    "UnitRate",
    "Guest",
    "Reservation",
    "Receipt",
    "Invoice",
    "PaymentLink",
    "OwnerStatement",
    "SmartLock",
    "AccessKey",
    "Task",
    "Notification",
    "Message",
    "WebhookLog",
]
