"""Database module for local SQLite storage."""

from .models import AvailabilityEvent, Base, Loan
from .schemas import AvailabilityEventResponse, EventReason, EventStatus
from .sqlite import Database, get_db, reset_db

__all__ = [
    "AvailabilityEvent",
    "AvailabilityEventResponse",
    "Base",
    "Database",
    "EventReason",
    "EventStatus",
    "Loan",
    "get_db",
    "reset_db",
]
