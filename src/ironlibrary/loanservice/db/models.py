"""SQLAlchemy models for the loan service.

Tables:
- loans: Individual loan records
- availability_events: Pending copy-count adjustments for the book directory
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Date, Enum, Index, Integer, String, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..status import INITIAL_STATUS, LoanStatus
from .schemas import EventStatus

NOTES_MAX_LENGTH = 500


def utc_now() -> str:
    """Current UTC time as an ISO string for timestamp columns."""
    return datetime.now(timezone.utc).isoformat()


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Loan(Base):
    """Loan model - one book lent to one user."""

    __tablename__ = "loans"
    __table_args__ = (
        # A user holds at most one active loan per book
        Index(
            "uq_loans_active_user_book",
            "user_id",
            "book_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identifiers owned by the user and book directories
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    book_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Dates
    loan_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    return_date: Mapped[Optional[date]] = mapped_column(Date)

    status: Mapped[LoanStatus] = mapped_column(
        Enum(LoanStatus, native_enum=False, length=20, validate_strings=True),
        nullable=False,
        default=INITIAL_STATUS,
        index=True,
    )

    notes: Mapped[Optional[str]] = mapped_column(String(NOTES_MAX_LENGTH))

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return (
            f"<Loan(id={self.id}, user_id={self.user_id}, book_id={self.book_id}, "
            f"status={self.status.value if self.status else None})>"
        )

    def is_overdue_on(self, today: date) -> bool:
        """Check if the loan is past due while still active.

        Independent of the overdue sweep: an ACTIVE loan reads as overdue
        here as soon as ``today`` is after its due date.
        """
        return self.status == LoanStatus.ACTIVE and today > self.due_date

    def days_overdue_on(self, today: date) -> int:
        """Days past due (0 if not overdue)."""
        if not self.is_overdue_on(today):
            return 0
        return (today - self.due_date).days

    def days_until_due_on(self, today: date) -> int:
        """Days until due (negative once past due)."""
        return (self.due_date - today).days

    @property
    def loan_duration_days(self) -> int:
        """Days between loan date and due date."""
        return (self.due_date - self.loan_date).days

    @property
    def can_be_returned(self) -> bool:
        return LoanStatus(self.status).allows_return


class AvailabilityEvent(Base):
    """Availability event - a copy-count change owed to the book directory."""

    __tablename__ = "availability_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    loan_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=EventStatus.PENDING.value, index=True
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return (
            f"<AvailabilityEvent(id={self.id}, book_id={self.book_id}, "
            f"delta={self.delta:+d}, status={self.status})>"
        )
