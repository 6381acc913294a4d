"""Availability event queue.

Copy-count changes owed to the book directory after a loan closes are
written as rows in the same transaction as the loan change, then delivered
once the transaction has committed. A delivery failure leaves the row
FAILED with its error instead of failing the loan operation; ``flush``
delivers whatever is still outstanding when someone asks for it.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..clients.base import DirectoryError
from ..clients.books import BookDirectory
from ..db.models import AvailabilityEvent
from ..db.schemas import EventReason, EventStatus
from ..db.sqlite import Database

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Result of delivering queued events."""

    dispatched: int = 0
    failed: int = 0
    errors: list[tuple[int, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0


class AvailabilityEventQueue:
    """Records and delivers availability adjustments."""

    def __init__(self, db: Database, books: BookDirectory):
        self.db = db
        self.books = books

    def enqueue(
        self,
        session: Session,
        book_id: int,
        delta: int,
        reason: EventReason,
        loan_id: Optional[int] = None,
    ) -> AvailabilityEvent:
        """Add an event inside the caller's transaction.

        Args:
            session: Open session of the operation that owes the adjustment
            book_id: Book whose copy count changes
            delta: Copies to add (negative to remove)
            reason: Why the adjustment is owed
            loan_id: Loan that caused it, if any

        Returns:
            The new event, flushed so its id is set
        """
        event = AvailabilityEvent(
            book_id=book_id,
            loan_id=loan_id,
            delta=delta,
            reason=reason.value,
            status=EventStatus.PENDING.value,
        )
        session.add(event)
        session.flush()
        return event

    def dispatch(self, event_id: int) -> bool:
        """Make one delivery attempt for an event.

        Returns:
            True if the book directory accepted the adjustment
        """
        with self.db.get_session() as session:
            event = session.get(AvailabilityEvent, event_id)
            if event is None or event.status == EventStatus.COMPLETED.value:
                return event is not None

            event.attempts += 1
            try:
                self.books.adjust_availability(event.book_id, event.delta)
            except Exception as e:
                # Any failure stays on the row; the loan change is already committed
                expected = isinstance(e, DirectoryError)
                event.status = EventStatus.FAILED.value
                event.last_error = str(e) if expected else f"{type(e).__name__}: {e}"
                logger.warning(
                    "Availability adjustment %+d for book %s failed (event %s, %s): %s",
                    event.delta,
                    event.book_id,
                    event.id,
                    event.reason,
                    e,
                    exc_info=not expected,
                )
                return False

            event.status = EventStatus.COMPLETED.value
            event.last_error = None
            logger.info(
                "Availability of book %s adjusted by %+d (%s)",
                event.book_id,
                event.delta,
                event.reason,
            )
            return True

    def list_events(self, status: Optional[EventStatus] = None) -> list[AvailabilityEvent]:
        """List events, optionally filtered by status."""
        with self.db.get_session() as session:
            stmt = select(AvailabilityEvent).order_by(AvailabilityEvent.id)
            if status:
                stmt = stmt.where(AvailabilityEvent.status == status.value)
            return list(session.execute(stmt).scalars().all())

    def pending(self) -> list[AvailabilityEvent]:
        """Events not yet delivered (pending or failed)."""
        with self.db.get_session() as session:
            stmt = (
                select(AvailabilityEvent)
                .where(
                    AvailabilityEvent.status.in_(
                        [EventStatus.PENDING.value, EventStatus.FAILED.value]
                    )
                )
                .order_by(AvailabilityEvent.id)
            )
            return list(session.execute(stmt).scalars().all())

    def flush(self) -> DispatchResult:
        """Make one delivery attempt for every outstanding event."""
        result = DispatchResult()
        for event in self.pending():
            if self.dispatch(event.id):
                result.dispatched += 1
            else:
                result.failed += 1
                with self.db.get_session() as session:
                    refreshed = session.get(AvailabilityEvent, event.id)
                    error = refreshed.last_error if refreshed else None
                result.errors.append((event.id, error or "unknown error"))
        return result
