"""Pydantic schemas for loans."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from ..db.models import NOTES_MAX_LENGTH, Loan
from ..status import LoanStatus


class LoanCreate(BaseModel):
    """Schema for creating a loan."""

    user_id: int = Field(..., gt=0)
    book_id: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=NOTES_MAX_LENGTH)


class LoanUpdate(BaseModel):
    """Schema for updating a loan.

    Only ``due_date`` and ``notes`` can be changed; fields left unset are
    kept as they are.
    """

    due_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=NOTES_MAX_LENGTH)


class LoanResponse(BaseModel):
    """Schema for loan responses."""

    id: int
    user_id: int
    book_id: int
    loan_date: date
    due_date: date
    return_date: Optional[date]
    status: LoanStatus
    notes: Optional[str]
    is_overdue: bool
    days_overdue: int
    loan_duration_days: int

    model_config = {"from_attributes": True}

    @classmethod
    def from_loan(cls, loan: Loan, today: date) -> "LoanResponse":
        """Build a response, computing the date-dependent fields for ``today``."""
        return cls(
            id=loan.id,
            user_id=loan.user_id,
            book_id=loan.book_id,
            loan_date=loan.loan_date,
            due_date=loan.due_date,
            return_date=loan.return_date,
            status=loan.status,
            notes=loan.notes,
            is_overdue=loan.is_overdue_on(today),
            days_overdue=loan.days_overdue_on(today),
            loan_duration_days=loan.loan_duration_days,
        )


class LoanStatistics(BaseModel):
    """Loan counts by status."""

    total_loans: int = 0
    active_loans: int = 0
    overdue_loans: int = 0
    returned_loans: int = 0
    cancelled_loans: int = 0

    @classmethod
    def from_counts(cls, counts: dict[LoanStatus, int], total: int) -> "LoanStatistics":
        return cls(
            total_loans=total,
            active_loans=counts.get(LoanStatus.ACTIVE, 0),
            overdue_loans=counts.get(LoanStatus.OVERDUE, 0),
            returned_loans=counts.get(LoanStatus.RETURNED, 0),
            cancelled_loans=counts.get(LoanStatus.CANCELLED, 0),
        )
