"""Pydantic schemas and enums for the availability event queue."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class EventStatus(str, Enum):
    """Delivery status of an availability event."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class EventReason(str, Enum):
    """Why a book's availability has to be adjusted."""

    RETURN = "return"
    CANCEL = "cancel"
    COMPENSATION = "compensation"  # undo a decrement whose loan was never saved


class AvailabilityEventResponse(BaseModel):
    """Schema for availability event responses."""

    id: int
    book_id: int
    loan_id: Optional[int]
    delta: int
    reason: EventReason
    status: EventStatus
    attempts: int
    last_error: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
